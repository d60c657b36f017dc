"""Errors raised while loading or evaluating decisions."""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Optional, Sequence, Tuple


class ErrorKind(str, Enum):
    """Kinds of evaluation errors reported on a decision."""

    UNCOVERED_INPUT = "uncovered_input"
    AMBIGUOUS_MATCH = "ambiguous_match"
    TYPE_MISMATCH = "type_mismatch"
    MISSING_DEPENDENCY = "missing_dependency"
    CYCLIC_GRAPH = "cyclic_graph"


class ModelDefinitionError(ValueError):
    """A decision model file or definition is malformed."""


class DecisionError(Exception):
    """Base class for errors attached to a single decision."""

    kind: ErrorKind

    def __init__(self, message: str, decision: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.decision = decision
        self.rule_ids: Tuple[int, ...] = ()

    def __str__(self) -> str:
        if self.decision:
            return f"{self.decision}: {self.message}"
        return self.message


class UncoveredInputError(DecisionError):
    """No rule of a UNIQUE table matched the input."""

    kind = ErrorKind.UNCOVERED_INPUT

    def __init__(self, table: str, inputs: dict, decision: Optional[str] = None):
        shown = ", ".join(f"{k}={v}" for k, v in inputs.items())
        super().__init__(f"No rule in table '{table}' matched ({shown})", decision)
        self.table = table


class AmbiguousMatchError(DecisionError):
    """Several rules of a UNIQUE table matched the same input."""

    kind = ErrorKind.AMBIGUOUS_MATCH

    def __init__(self, table: str, rule_ids: Sequence[int], decision: Optional[str] = None):
        ids = ", ".join(str(r) for r in rule_ids)
        super().__init__(
            f"UNIQUE hit policy violated in table '{table}': rules {ids} all matched",
            decision,
        )
        self.table = table
        self.rule_ids = tuple(rule_ids)


class TypeMismatchError(DecisionError):
    """An input value has a kind no condition of its column can compare."""

    kind = ErrorKind.TYPE_MISMATCH

    def __init__(
        self,
        where: str,
        column: str,
        value: object,
        expected: Iterable[str],
        decision: Optional[str] = None,
    ):
        kinds = "/".join(sorted(set(expected)))
        super().__init__(
            f"Column '{column}' of {where} expects {kinds}, got {value}",
            decision,
        )
        self.where = where
        self.column = column


class MissingDependencyError(DecisionError):
    """A required fact is absent because an upstream decision did not produce it."""

    kind = ErrorKind.MISSING_DEPENDENCY

    def __init__(self, missing: Sequence[str], decision: Optional[str] = None):
        super().__init__(
            f"Required input(s) not available: {', '.join(missing)}", decision
        )
        self.missing = tuple(missing)


class CyclicGraphError(ModelDefinitionError):
    """The decision graph contains a dependency cycle.

    Raised while building a graph, so no session can ever run against it.
    """

    kind = ErrorKind.CYCLIC_GRAPH

    def __init__(self, cycle: Sequence[str]):
        super().__init__(f"Decision graph has a cycle: {' -> '.join(cycle)}")
        self.cycle = tuple(cycle)
