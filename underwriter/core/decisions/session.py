"""One end-to-end evaluation of a decision model."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set

from .context import FactContext
from .errors import DecisionError, MissingDependencyError
from .events import (
    ContextEntryEnded,
    ContextEntryStarted,
    DecisionEnded,
    DecisionStarted,
    ErrorSink,
    EvaluationEnded,
    EvaluationListener,
    EvaluationStarted,
    ListenerDispatcher,
    MatchCreated,
    MatchFired,
    TableEnded,
    TableStarted,
)
from .graph import DecisionModel, DecisionNode
from .models import (
    DecisionFailure,
    DecisionOutcome,
    DecisionStatus,
    EvaluationResult,
    MatchRecordResponse,
    SessionState,
)
from .tables import DecisionTable, MatchRecord, TableOutcome

logger = logging.getLogger(__name__)


def new_correlation_id() -> str:
    """Short random id grouping the events of one run."""
    return uuid.uuid4().hex[:8]


class EvaluationSession:
    """Runs a decision model once against one set of inputs.

    A session is single use: ``run`` moves it from NOT_STARTED to RUNNING and
    then to COMPLETED or FAILED. Evaluation errors never propagate; they are
    attached to the decision that raised them and reported on the result.
    """

    def __init__(
        self,
        model: DecisionModel,
        listeners: Sequence[EvaluationListener] = (),
        error_sink: Optional[ErrorSink] = None,
        correlation_id: Optional[str] = None,
    ):
        self.model = model
        self.dispatcher = ListenerDispatcher(listeners, error_sink)
        self.correlation_id = correlation_id or new_correlation_id()
        self.state = SessionState.NOT_STARTED
        self.facts: Optional[FactContext] = None
        self.match_records: List[MatchRecord] = []
        self.outcomes: List[DecisionOutcome] = []

    def run(
        self,
        inputs: Mapping[str, Any],
        decision: Optional[str] = None,
    ) -> EvaluationResult:
        """Evaluate every decision, or only ``decision`` and what it depends on.

        Raises:
            RuntimeError: if the session was already run
            KeyError: if ``decision`` is not part of the model
        """
        if self.state != SessionState.NOT_STARTED:
            raise RuntimeError(f"Session {self.correlation_id} has already run")
        plan = self.model.graph.plan([decision] if decision else None)

        self.facts = FactContext.from_input(inputs, self.model.inputs)
        self.state = SessionState.RUNNING
        started_at = datetime.utcnow()
        logger.debug(f"Session {self.correlation_id}: evaluating {len(plan)} decision(s)")
        self.dispatcher.dispatch(
            EvaluationStarted(
                correlation_id=self.correlation_id,
                model=self.model.name,
                timestamp=started_at,
                inputs=self.facts.snapshot(),
            )
        )

        unavailable: Set[str] = set()
        for node in plan:
            outcome = self._evaluate_node(node, unavailable)
            self.outcomes.append(outcome)
            if outcome.status != DecisionStatus.SUCCEEDED:
                unavailable.add(node.name)

        errors = [o.error for o in self.outcomes if o.error is not None]
        self.state = SessionState.FAILED if errors else SessionState.COMPLETED
        results = self._collect_results(decision)
        ended_at = datetime.utcnow()
        self.dispatcher.dispatch(
            EvaluationEnded(
                correlation_id=self.correlation_id,
                model=self.model.name,
                timestamp=ended_at,
                state=self.state,
                results=results,
                errors=tuple(errors),
            )
        )
        if errors:
            logger.info(
                f"Session {self.correlation_id} failed with {len(errors)} error(s)"
            )

        return EvaluationResult(
            correlation_id=self.correlation_id,
            model=self.model.name,
            state=self.state,
            started_at=started_at,
            ended_at=ended_at,
            results=results,
            outcomes=list(self.outcomes),
            errors=errors,
            match_records=[MatchRecordResponse(**r.to_dict()) for r in self.match_records],
        )

    def _evaluate_node(self, node: DecisionNode, unavailable: Set[str]) -> DecisionOutcome:
        self.dispatcher.dispatch(
            DecisionStarted(correlation_id=self.correlation_id, decision=node.name)
        )

        blocked = [dep for dep in node.requires if dep in unavailable]
        if blocked:
            failure = DecisionFailure.from_error(
                node.name, MissingDependencyError(blocked, node.name)
            )
            outcome = DecisionOutcome(
                decision=node.name, status=DecisionStatus.SKIPPED, error=failure
            )
        else:
            try:
                output = node.evaluate(self.facts, self)
                self.facts.put_decision(node.name, output)
            except DecisionError as e:
                logger.debug(f"Decision '{node.name}' failed: {e}")
                outcome = DecisionOutcome(
                    decision=node.name,
                    status=DecisionStatus.FAILED,
                    error=DecisionFailure.from_error(node.name, e),
                )
            else:
                outcome = DecisionOutcome(
                    decision=node.name,
                    status=DecisionStatus.SUCCEEDED,
                    result=self.facts.decision_output(node.name),
                )

        self.dispatcher.dispatch(
            DecisionEnded(
                correlation_id=self.correlation_id,
                decision=node.name,
                status=outcome.status,
                result=outcome.result,
                error=outcome.error,
            )
        )
        return outcome

    def _collect_results(self, decision: Optional[str]) -> Dict[str, Any]:
        results: Dict[str, Any] = {}
        for outcome in self.outcomes:
            if outcome.status != DecisionStatus.SUCCEEDED:
                continue
            if decision and outcome.decision != decision:
                continue
            results[outcome.decision] = outcome.result
        return results

    # Node tracer callbacks

    def table_started(self, decision: str, table: DecisionTable) -> None:
        self.dispatcher.dispatch(
            TableStarted(correlation_id=self.correlation_id, decision=decision, table=table.name)
        )

    def table_ended(self, decision: str, table: DecisionTable, outcome: TableOutcome) -> None:
        record = outcome.record
        self.match_records.append(record)
        for rule_id in record.matched_rule_ids:
            self.dispatcher.dispatch(
                MatchCreated(
                    correlation_id=self.correlation_id,
                    decision=decision,
                    table=table.name,
                    rule_id=rule_id,
                )
            )
        if record.selected_rule_id is not None:
            self.dispatcher.dispatch(
                MatchFired(
                    correlation_id=self.correlation_id,
                    decision=decision,
                    table=table.name,
                    rule_id=record.selected_rule_id,
                    outputs=dict(record.outputs or {}),
                )
            )
        self.dispatcher.dispatch(
            TableEnded(
                correlation_id=self.correlation_id,
                decision=decision,
                table=table.name,
                record=record,
                inputs={key: value.to_python() for key, value in outcome.inputs.items()},
            )
        )

    def entry_started(self, decision: str, entry: str) -> None:
        self.dispatcher.dispatch(
            ContextEntryStarted(correlation_id=self.correlation_id, decision=decision, entry=entry)
        )

    def entry_ended(self, decision: str, entry: str, value: Any) -> None:
        self.dispatcher.dispatch(
            ContextEntryEnded(
                correlation_id=self.correlation_id,
                decision=decision,
                entry=entry,
                value=value,
            )
        )
