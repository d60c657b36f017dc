"""Condition matchers for decision table cells."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Optional, Tuple

from .errors import ModelDefinitionError
from .values import FieldType, Value, ValueKind, literal

NUMERIC_KINDS: FrozenSet[ValueKind] = frozenset({ValueKind.INTEGER, ValueKind.REAL})

# Cell text meaning "any value" in a decision model file
WILDCARD_CELL = "-"


class Operator(str, Enum):
    """Supported per-column comparison operators."""

    ANY = "any"
    EQUALS = "eq"
    INTERVAL = "interval"
    IN = "in"


class Condition(ABC):
    """Abstract base class for one input cell of a rule."""

    operator: Operator

    @abstractmethod
    def matches(self, value: Value) -> bool:
        """Check the value against this condition.

        Args:
            value: Fact value of the column (may be NULL)

        Returns:
            True if the condition holds. A value of a kind this condition
            cannot compare never matches.
        """
        ...

    @abstractmethod
    def accepted_kinds(self) -> FrozenSet[ValueKind]:
        """Kinds this condition can compare against.

        An empty set means every kind (wildcard).
        """
        ...

    @abstractmethod
    def describe(self) -> str:
        """Short human-readable form used in traces and the CLI."""
        ...

    def accepts(self, kind: ValueKind) -> bool:
        kinds = self.accepted_kinds()
        return not kinds or kind in kinds

    def __str__(self) -> str:
        return self.describe()


class WildcardCondition(Condition):
    """Matches everything, including NULL."""

    operator = Operator.ANY

    def matches(self, value: Value) -> bool:
        return True

    def accepted_kinds(self) -> FrozenSet[ValueKind]:
        return frozenset()

    def describe(self) -> str:
        return WILDCARD_CELL

    def __eq__(self, other: object) -> bool:
        return isinstance(other, WildcardCondition)

    def __hash__(self) -> int:
        return hash(Operator.ANY)


def _comparable(a: Value, b: Value) -> bool:
    return a.kind.compatible_with(b.kind)


class EqualsCondition(Condition):
    """Matches when the value equals a literal of a compatible kind."""

    operator = Operator.EQUALS

    def __init__(self, expected: Value):
        if expected.is_null:
            raise ModelDefinitionError("Equality against null is not supported; use '-'")
        self.expected = expected

    def matches(self, value: Value) -> bool:
        if value.is_null or not _comparable(value, self.expected):
            return False
        return value.raw == self.expected.raw

    def accepted_kinds(self) -> FrozenSet[ValueKind]:
        if self.expected.kind.is_numeric:
            return NUMERIC_KINDS
        return frozenset({self.expected.kind})

    def describe(self) -> str:
        return str(self.expected)


class IntervalCondition(Condition):
    """Numeric range. Lower bound inclusive, upper bound exclusive by default.

    A missing bound is unbounded on that side.
    """

    operator = Operator.INTERVAL

    def __init__(
        self,
        low: Optional[float] = None,
        high: Optional[float] = None,
        closed_low: bool = True,
        closed_high: bool = False,
    ):
        if low is None and high is None:
            raise ModelDefinitionError("Interval needs at least one bound")
        for bound in (low, high):
            if bound is not None and (isinstance(bound, bool) or not isinstance(bound, (int, float))):
                raise ModelDefinitionError(f"Interval bound must be numeric, got {bound!r}")
        if low is not None and high is not None and low > high:
            raise ModelDefinitionError(f"Empty interval: low {low} > high {high}")
        self.low = low
        self.high = high
        self.closed_low = closed_low
        self.closed_high = closed_high

    def matches(self, value: Value) -> bool:
        if value.kind not in NUMERIC_KINDS:
            return False
        x = value.raw
        if self.low is not None:
            if x < self.low or (x == self.low and not self.closed_low):
                return False
        if self.high is not None:
            if x > self.high or (x == self.high and not self.closed_high):
                return False
        return True

    def accepted_kinds(self) -> FrozenSet[ValueKind]:
        return NUMERIC_KINDS

    def describe(self) -> str:
        left = "[" if self.closed_low else "("
        right = "]" if self.closed_high else ")"
        low = "-inf" if self.low is None else f"{self.low}"
        high = "inf" if self.high is None else f"{self.high}"
        return f"{left}{low}..{high}{right}"


class MembershipCondition(Condition):
    """Matches when the value is one of a set of literals."""

    operator = Operator.IN

    def __init__(self, options: Tuple[Value, ...]):
        if not options:
            raise ModelDefinitionError("Set membership needs at least one value")
        kinds = {opt.kind for opt in options}
        if len(kinds) > 1 and not kinds <= NUMERIC_KINDS:
            raise ModelDefinitionError(
                f"Set members must share one kind, got {sorted(k.value for k in kinds)}"
            )
        self.options = options

    def matches(self, value: Value) -> bool:
        if value.is_null:
            return False
        return any(_comparable(value, opt) and value.raw == opt.raw for opt in self.options)

    def accepted_kinds(self) -> FrozenSet[ValueKind]:
        kind = self.options[0].kind
        if kind.is_numeric:
            return NUMERIC_KINDS
        return frozenset({kind})

    def describe(self) -> str:
        return "{" + ", ".join(str(opt) for opt in self.options) + "}"


WILDCARD = WildcardCondition()


def matches(condition: Condition, value: Value) -> bool:
    """Evaluate one cell against one value."""
    return condition.matches(value)


# ---------------------------------------------------------------------------
# Parsing cells from a decision model file
# ---------------------------------------------------------------------------


def _parse_equals(spec: Any, field_type: Optional[FieldType]) -> Condition:
    return EqualsCondition(literal(spec, field_type))


def _parse_in(spec: Any, field_type: Optional[FieldType]) -> Condition:
    if not isinstance(spec, (list, tuple)):
        raise ModelDefinitionError(f"'in' expects a list, got {spec!r}")
    return MembershipCondition(tuple(literal(item, field_type) for item in spec))


def _parse_interval(spec: Any, field_type: Optional[FieldType]) -> Condition:
    if not isinstance(spec, dict):
        raise ModelDefinitionError(f"'interval' expects a mapping, got {spec!r}")
    unknown = set(spec) - {"low", "high", "closed_low", "closed_high"}
    if unknown:
        raise ModelDefinitionError(f"Unknown interval keys: {sorted(unknown)}")
    return IntervalCondition(
        low=spec.get("low"),
        high=spec.get("high"),
        closed_low=bool(spec.get("closed_low", True)),
        closed_high=bool(spec.get("closed_high", False)),
    )


# Registry mapping operators to cell parsers
PARSERS: Dict[Operator, Callable[[Any, Optional[FieldType]], Condition]] = {
    Operator.EQUALS: _parse_equals,
    Operator.IN: _parse_in,
    Operator.INTERVAL: _parse_interval,
}


def parse_condition(cell: Any, field_type: Optional[FieldType] = None) -> Condition:
    """Parse one input cell of a rule row.

    Cell forms:
        ``-`` or null            wildcard
        scalar                   equality with the literal
        ``{eq: x}``              equality
        ``{in: [a, b]}``         set membership
        ``{interval: {low, high, closed_low, closed_high}}``
    """
    if cell is None or cell == WILDCARD_CELL:
        return WILDCARD
    if isinstance(cell, Condition):
        return cell
    if isinstance(cell, dict):
        if len(cell) != 1:
            raise ModelDefinitionError(f"Cell must have exactly one operator: {cell!r}")
        (key, spec), = cell.items()
        try:
            operator = Operator(key)
        except ValueError:
            raise ModelDefinitionError(f"Unknown operator '{key}'") from None
        if operator == Operator.ANY:
            return WILDCARD
        return PARSERS[operator](spec, field_type)
    return _parse_equals(cell, field_type)
