"""Typed values flowing through decision tables."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple


class ValueKind(str, Enum):
    """Kinds of values the engine can compare."""

    INTEGER = "integer"
    REAL = "real"
    BOOLEAN = "boolean"
    STRING = "string"
    CATEGORY = "category"
    NULL = "null"

    @property
    def is_numeric(self) -> bool:
        """INTEGER and REAL compare with each other."""
        return self in (ValueKind.INTEGER, ValueKind.REAL)

    def compatible_with(self, other: "ValueKind") -> bool:
        """Check if two kinds can be compared."""
        if self.is_numeric and other.is_numeric:
            return True
        return self == other


@dataclass(frozen=True)
class Value:
    """A tagged value. ``raw`` is always a plain Python object."""

    kind: ValueKind
    raw: Any = None

    @classmethod
    def null(cls) -> "Value":
        return NULL

    @classmethod
    def of(cls, raw: Any) -> "Value":
        """Tag a plain Python object with its natural kind.

        Strings become STRING; use ``Value.category`` for enumerated literals.
        """
        if isinstance(raw, Value):
            return raw
        if raw is None:
            return NULL
        # bool before int: bool is an int subclass
        if isinstance(raw, bool):
            return cls(ValueKind.BOOLEAN, raw)
        if isinstance(raw, int):
            return cls(ValueKind.INTEGER, raw)
        if isinstance(raw, float):
            return cls(ValueKind.REAL, raw)
        if isinstance(raw, str):
            return cls(ValueKind.STRING, raw)
        raise TypeError(f"Unsupported value type: {type(raw).__name__}")

    @classmethod
    def category(cls, raw: str) -> "Value":
        return cls(ValueKind.CATEGORY, raw)

    @property
    def is_null(self) -> bool:
        return self.kind == ValueKind.NULL

    def to_python(self) -> Any:
        return self.raw

    def __str__(self) -> str:
        if self.is_null:
            return "null"
        return repr(self.raw)


NULL = Value(ValueKind.NULL, None)


@dataclass(frozen=True)
class FieldType:
    """Declared type of an input field or output column."""

    kind: ValueKind
    categories: Tuple[str, ...] = ()

    @classmethod
    def parse(cls, spec: Any) -> "FieldType":
        """Parse a type declaration from a decision model file.

        Accepts a kind name (``"integer"``) or a mapping
        ``{"category": [...]}`` for enumerations.
        """
        if isinstance(spec, dict):
            if "category" not in spec:
                raise ValueError(f"Unknown type declaration: {spec}")
            values = tuple(str(v) for v in spec["category"])
            if not values:
                raise ValueError("Category type needs at least one value")
            return cls(ValueKind.CATEGORY, values)
        try:
            kind = ValueKind(str(spec).lower())
        except ValueError:
            raise ValueError(f"Unknown type: {spec}") from None
        if kind in (ValueKind.CATEGORY, ValueKind.NULL):
            raise ValueError(f"Type '{kind.value}' cannot be declared without values")
        return cls(kind)

    def coerce(self, raw: Any) -> Value:
        """Coerce a raw input into a Value of this type when it fits.

        Values that do not fit keep their natural kind so that tables can
        report a kind mismatch instead of silently guessing.
        """
        if isinstance(raw, Value):
            raw = raw.raw
        if raw is None:
            return NULL

        if self.kind == ValueKind.INTEGER:
            if isinstance(raw, float) and raw.is_integer():
                return Value(ValueKind.INTEGER, int(raw))
        elif self.kind == ValueKind.REAL:
            if isinstance(raw, int) and not isinstance(raw, bool):
                return Value(ValueKind.REAL, float(raw))
        elif self.kind == ValueKind.CATEGORY:
            if isinstance(raw, str) and raw in self.categories:
                return Value.category(raw)

        return Value.of(raw)

    def describe(self) -> str:
        if self.kind == ValueKind.CATEGORY:
            return f"category[{', '.join(self.categories)}]"
        return self.kind.value


def literal(raw: Any, field_type: Optional[FieldType] = None) -> Value:
    """Build a literal Value for a condition or output cell."""
    if field_type is not None:
        return field_type.coerce(raw)
    return Value.of(raw)
