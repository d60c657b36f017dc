"""Pydantic schemas for evaluation results and model descriptions."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .errors import DecisionError, ErrorKind
from .graph import DecisionModel
from .tables import DecisionTable


class SessionState(str, Enum):
    """Lifecycle of one evaluation session."""

    NOT_STARTED = "NOT_STARTED"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class DecisionStatus(str, Enum):
    """Outcome of a single decision within a session."""

    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


class DecisionFailure(BaseModel):
    """An error attached to one decision."""

    decision: str
    kind: ErrorKind
    message: str
    rule_ids: List[int] = Field(default_factory=list)

    @classmethod
    def from_error(cls, decision: str, error: DecisionError) -> "DecisionFailure":
        return cls(
            decision=decision,
            kind=error.kind,
            message=error.message,
            rule_ids=list(error.rule_ids),
        )


class DecisionOutcome(BaseModel):
    """What happened to one decision node."""

    decision: str
    status: DecisionStatus
    result: Any = None
    error: Optional[DecisionFailure] = None


class MatchRecordResponse(BaseModel):
    """Serialized match record."""

    table: str
    decision: Optional[str] = None
    matched_rule_ids: List[int] = Field(default_factory=list)
    selected_rule_id: Optional[int] = None
    outputs: Optional[Dict[str, Any]] = None


class EvaluationResult(BaseModel):
    """Final bundle returned by an evaluation session."""

    correlation_id: str
    model: str
    state: SessionState
    started_at: datetime
    ended_at: Optional[datetime] = None
    results: Dict[str, Any] = Field(default_factory=dict)
    outcomes: List[DecisionOutcome] = Field(default_factory=list)
    errors: List[DecisionFailure] = Field(default_factory=list)
    match_records: List[MatchRecordResponse] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.state == SessionState.COMPLETED

    def outcome(self, decision: str) -> Optional[DecisionOutcome]:
        """Get the outcome of one decision by name."""
        for outcome in self.outcomes:
            if outcome.decision == decision:
                return outcome
        return None


class RuleDescription(BaseModel):
    rule_id: int
    when: List[str]
    then: List[Any]
    annotation: Optional[str] = None


class TableDescription(BaseModel):
    name: str
    hit_policy: str
    inputs: List[str]
    outputs: List[str]
    rules: List[RuleDescription] = Field(default_factory=list)

    @classmethod
    def from_table(cls, table: DecisionTable) -> "TableDescription":
        return cls(
            name=table.name,
            hit_policy=table.hit_policy.value,
            inputs=[col.key for col in table.inputs],
            outputs=[col.name for col in table.outputs],
            rules=[
                RuleDescription(
                    rule_id=rule.rule_id,
                    when=[cond.describe() for cond in rule.conditions],
                    then=[value.to_python() for value in rule.outputs],
                    annotation=rule.annotation,
                )
                for rule in table.rules
            ],
        )


class DecisionDescription(BaseModel):
    name: str
    kind: str
    requires: List[str] = Field(default_factory=list)
    tables: List[TableDescription] = Field(default_factory=list)


class ModelDescription(BaseModel):
    """Read-only view of a loaded decision model."""

    name: str
    namespace: str = ""
    description: str = ""
    inputs: Dict[str, str] = Field(default_factory=dict)
    decisions: List[DecisionDescription] = Field(default_factory=list)

    @classmethod
    def from_model(cls, model: DecisionModel) -> "ModelDescription":
        decisions = []
        for name in model.graph.order:
            node = model.graph.get(name)
            decisions.append(
                DecisionDescription(
                    name=node.name,
                    kind=node.kind.value,
                    requires=list(node.requires),
                    tables=[TableDescription.from_table(t) for t in node.tables()],
                )
            )
        return cls(
            name=model.name,
            namespace=model.namespace,
            description=model.description.strip(),
            inputs={key: field_type.describe() for key, field_type in model.inputs.items()},
            decisions=decisions,
        )
