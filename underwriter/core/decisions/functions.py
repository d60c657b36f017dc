"""Aggregation functions available to context entries."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, Optional, Sequence

from .values import Value, ValueKind


class AggregationFunction(ABC):
    """Abstract base class for deterministic functions over numeric facts."""

    name: str

    @abstractmethod
    def apply(self, args: Sequence[Value]) -> Value:
        """Compute the result.

        Args:
            args: Argument values, already checked to be numeric

        Returns:
            REAL result, or INTEGER when every argument is INTEGER
        """
        ...

    def __call__(self, args: Sequence[Value]) -> Value:
        if not args:
            raise ValueError(f"{self.name}() needs at least one argument")
        for arg in args:
            if not arg.kind.is_numeric:
                raise TypeError(f"{self.name}() expects numbers, got {arg.kind.value} {arg}")
        return self.apply(args)


def _numeric(raw: float, args: Sequence[Value]) -> Value:
    if all(arg.kind == ValueKind.INTEGER for arg in args):
        return Value(ValueKind.INTEGER, int(raw))
    return Value(ValueKind.REAL, float(raw))


class ProductFunction(AggregationFunction):
    """Multiplies its arguments (e.g. driver score times vehicle factor)."""

    name = "product"

    def apply(self, args: Sequence[Value]) -> Value:
        result = 1
        for arg in args:
            result *= arg.raw
        return _numeric(result, args)


class SumFunction(AggregationFunction):
    name = "sum"

    def apply(self, args: Sequence[Value]) -> Value:
        return _numeric(sum(arg.raw for arg in args), args)


class MinFunction(AggregationFunction):
    name = "min"

    def apply(self, args: Sequence[Value]) -> Value:
        return min(args, key=lambda arg: arg.raw)


class MaxFunction(AggregationFunction):
    name = "max"

    def apply(self, args: Sequence[Value]) -> Value:
        return max(args, key=lambda arg: arg.raw)


# Registry mapping function names to implementations
FUNCTIONS: Dict[str, AggregationFunction] = {
    fn.name: fn
    for fn in (ProductFunction(), SumFunction(), MinFunction(), MaxFunction())
}


def get_function(name: str) -> Optional[AggregationFunction]:
    """Get an aggregation function by name."""
    return FUNCTIONS.get(name)

