"""Decision tables with the UNIQUE hit policy."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Tuple

from .conditions import Condition
from .errors import (
    AmbiguousMatchError,
    DecisionError,
    MissingDependencyError,
    ModelDefinitionError,
    TypeMismatchError,
    UncoveredInputError,
)
from .values import FieldType, Value

logger = logging.getLogger(__name__)


class HitPolicy(str, Enum):
    """How multiple matching rules are resolved.

    Only UNIQUE is supported: more than one match is an error.
    """

    UNIQUE = "UNIQUE"


class Scope(Protocol):
    """Anything facts can be read from."""

    def get(self, key: str) -> Optional[Value]:
        ...


@dataclass(frozen=True)
class InputColumn:
    """An input column bound to a fact key."""

    name: str
    key: str
    type: Optional[FieldType] = None


@dataclass(frozen=True)
class OutputColumn:
    """An output column with an optional declared type."""

    name: str
    type: Optional[FieldType] = None


@dataclass(frozen=True)
class Rule:
    """One row: a condition per input column, a literal per output column."""

    rule_id: int
    conditions: Tuple[Condition, ...]
    outputs: Tuple[Value, ...]
    annotation: Optional[str] = None

    def matches(self, values: Tuple[Value, ...]) -> bool:
        return all(cond.matches(value) for cond, value in zip(self.conditions, values))


@dataclass(frozen=True)
class MatchRecord:
    """Audit record of one table evaluation."""

    table: str
    decision: Optional[str]
    matched_rule_ids: Tuple[int, ...]
    selected_rule_id: Optional[int] = None
    outputs: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table": self.table,
            "decision": self.decision,
            "matched_rule_ids": list(self.matched_rule_ids),
            "selected_rule_id": self.selected_rule_id,
            "outputs": dict(self.outputs) if self.outputs is not None else None,
        }


@dataclass(frozen=True)
class TableOutcome:
    """Result of scanning a table once."""

    record: MatchRecord
    inputs: Dict[str, Value] = field(default_factory=dict)
    output: Any = None
    error: Optional[DecisionError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def output_as_python(self) -> Any:
        if isinstance(self.output, dict):
            return {name: value.to_python() for name, value in self.output.items()}
        if isinstance(self.output, Value):
            return self.output.to_python()
        return None


@dataclass(frozen=True)
class DecisionTable:
    """An ordered rule set evaluated under a hit policy."""

    name: str
    inputs: Tuple[InputColumn, ...]
    outputs: Tuple[OutputColumn, ...]
    rules: Tuple[Rule, ...]
    hit_policy: HitPolicy = HitPolicy.UNIQUE

    def __post_init__(self):
        if not self.outputs:
            raise ModelDefinitionError(f"Table '{self.name}' declares no output columns")
        for rule in self.rules:
            if len(rule.conditions) != len(self.inputs):
                raise ModelDefinitionError(
                    f"Rule {rule.rule_id} of table '{self.name}' has "
                    f"{len(rule.conditions)} condition(s), expected {len(self.inputs)}"
                )
            if len(rule.outputs) != len(self.outputs):
                raise ModelDefinitionError(
                    f"Rule {rule.rule_id} of table '{self.name}' has "
                    f"{len(rule.outputs)} output(s), expected {len(self.outputs)}"
                )

    @property
    def input_keys(self) -> Tuple[str, ...]:
        return tuple(col.key for col in self.inputs)

    @property
    def single_output(self) -> bool:
        return len(self.outputs) == 1

    def find_matches(self, values: Tuple[Value, ...]) -> List[Rule]:
        """All rules whose conditions hold, in declared order."""
        return [rule for rule in self.rules if rule.matches(values)]

    def evaluate(self, facts: Scope, decision: Optional[str] = None) -> TableOutcome:
        """Evaluate the table against a fact scope.

        Never raises for evaluation problems; the error is returned on the
        outcome so the caller can attach it to the decision.
        """
        empty = MatchRecord(table=self.name, decision=decision, matched_rule_ids=())
        try:
            looked_up = {col.key: facts.get(col.key) for col in self.inputs}
        except TypeMismatchError as e:
            e.decision = decision
            return TableOutcome(record=empty, error=e)
        missing = [key for key, value in looked_up.items() if value is None]
        if missing:
            return TableOutcome(record=empty, error=MissingDependencyError(missing, decision))

        values = tuple(looked_up[col.key] for col in self.inputs)
        inputs = {col.key: value for col, value in zip(self.inputs, values)}
        matched = self.find_matches(values)
        matched_ids = tuple(rule.rule_id for rule in matched)

        if len(matched) == 1:
            rule = matched[0]
            output = self._build_output(rule)
            outputs_py = {col.name: val.to_python() for col, val in zip(self.outputs, rule.outputs)}
            return TableOutcome(
                record=MatchRecord(
                    table=self.name,
                    decision=decision,
                    matched_rule_ids=matched_ids,
                    selected_rule_id=rule.rule_id,
                    outputs=outputs_py,
                ),
                inputs=inputs,
                output=output,
            )

        record = MatchRecord(table=self.name, decision=decision, matched_rule_ids=matched_ids)
        if matched:
            logger.debug(f"Table '{self.name}' matched rules {matched_ids} under UNIQUE")
            error: DecisionError = AmbiguousMatchError(self.name, matched_ids, decision)
        else:
            error = self._no_match_error(inputs, decision)
        return TableOutcome(record=record, inputs=inputs, error=error)

    def _build_output(self, rule: Rule) -> Any:
        if self.single_output:
            return rule.outputs[0]
        return {col.name: value for col, value in zip(self.outputs, rule.outputs)}

    def _no_match_error(self, inputs: Dict[str, Value], decision: Optional[str]) -> DecisionError:
        """Tell a kind mismatch apart from a gap in the rule set."""
        for index, column in enumerate(self.inputs):
            value = inputs[column.key]
            if value.is_null:
                continue
            column_conditions = [rule.conditions[index] for rule in self.rules]
            typed = [cond for cond in column_conditions if cond.accepted_kinds()]
            if typed and not any(cond.accepts(value.kind) for cond in typed):
                expected = {kind.value for cond in typed for kind in cond.accepted_kinds()}
                return TypeMismatchError(
                    f"table '{self.name}'",
                    column.name,
                    f"{value.kind.value} {value}",
                    expected,
                    decision,
                )
        return UncoveredInputError(self.name, inputs, decision)
