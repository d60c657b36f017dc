"""Fact context: the write-once store of inputs and decision outputs for one run."""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from .errors import TypeMismatchError
from .values import NULL, FieldType, Value, ValueKind


class FactContext:
    """Mapping from identifier to Value that only ever grows.

    Inputs are stored under dotted keys (``Driver.Age``). A decision with a
    single output is stored under its own name; a decision producing a record
    stores one dotted key per column (``Insurance Assessment.RiskCategory``).

    Input fields that cannot be represented as a Value (lists, nested
    mappings) are kept aside; reading one raises TypeMismatchError so the
    decision that needs it fails instead of the whole run.
    """

    def __init__(self) -> None:
        self._facts: Dict[str, Value] = {}
        self._records: Dict[str, tuple] = {}
        self._rejected: Dict[str, Tuple[str, List[str]]] = {}

    @classmethod
    def from_input(
        cls,
        payload: Mapping[str, Any],
        schema: Optional[Mapping[str, FieldType]] = None,
    ) -> "FactContext":
        """Build the initial context from caller input.

        ``payload`` maps input group names to field mappings. Every field the
        schema declares is present afterwards; absent fields become NULL.
        """
        schema = schema or {}
        facts = cls()
        flat: Dict[str, Value] = {}

        for group, fields in payload.items():
            if isinstance(fields, Mapping):
                for name, raw in fields.items():
                    key = f"{group}.{name}"
                    facts._accept(flat, key, raw, schema.get(key))
            else:
                facts._accept(flat, group, fields, schema.get(group))

        for key in schema:
            if key not in facts._rejected:
                flat.setdefault(key, NULL)

        for key, value in flat.items():
            facts._write(key, value)
        return facts

    def _accept(
        self,
        flat: Dict[str, Value],
        key: str,
        raw: Any,
        field_type: Optional[FieldType],
    ) -> None:
        try:
            flat[key] = field_type.coerce(raw) if field_type else Value.of(raw)
        except TypeError:
            expected = (
                [field_type.describe()]
                if field_type
                else [kind.value for kind in ValueKind if kind != ValueKind.NULL]
            )
            self._rejected[key] = (f"{type(raw).__name__} {raw!r}", expected)

    @property
    def rejected(self) -> Dict[str, str]:
        """Input keys whose values were refused, with the reason."""
        return {key: self._mismatch(key).message for key in self._rejected}

    def _mismatch(self, key: str) -> TypeMismatchError:
        shown, expected = self._rejected[key]
        return TypeMismatchError("input", key, shown, expected)

    def _write(self, key: str, value: Value) -> None:
        if key in self._facts:
            raise KeyError(f"Fact '{key}' is already set")
        self._facts[key] = value

    def put_decision(self, name: str, output: Any) -> None:
        """Write a decision's output atomically.

        ``output`` is either a Value or a mapping of column name to Value.
        Nothing is written if any key would collide.
        """
        if isinstance(output, Mapping):
            keys = {f"{name}.{column}": value for column, value in output.items()}
            clashes = [k for k in keys if k in self._facts] + (
                [name] if name in self._records or name in self._facts else []
            )
            if clashes:
                raise KeyError(f"Fact(s) already set: {', '.join(clashes)}")
            self._facts.update(keys)
            self._records[name] = tuple(output.keys())
        else:
            self._write(name, output)

    def get(self, key: str) -> Optional[Value]:
        """Return the Value for a key, or None when the key was never written.

        Raises:
            TypeMismatchError: if the key names a refused input field
        """
        if key in self._rejected:
            raise self._mismatch(key)
        return self._facts.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self._facts or key in self._records

    def __iter__(self) -> Iterator[str]:
        return iter(self._facts)

    def __len__(self) -> int:
        return len(self._facts)

    def decision_output(self, name: str) -> Any:
        """Return a decision's output as plain Python data."""
        if name in self._records:
            return {
                column: self._facts[f"{name}.{column}"].to_python()
                for column in self._records[name]
            }
        value = self._facts.get(name)
        return value.to_python() if value is not None else None

    def snapshot(self) -> Dict[str, Any]:
        """Plain copy of all facts, keyed by their dotted identifiers."""
        return {key: value.to_python() for key, value in self._facts.items()}


class ChildScope:
    """Read view over a fact context plus entries local to one decision.

    Context entries of a derived decision live here until the decision
    completes; they never leak into the shared fact context.
    """

    def __init__(self, parent: FactContext):
        self.parent = parent
        self._local: Dict[str, Value] = {}

    def set(self, key: str, value: Value) -> None:
        if key in self._local:
            raise KeyError(f"Context entry '{key}' is already set")
        self._local[key] = value

    def get(self, key: str) -> Optional[Value]:
        if key in self._local:
            return self._local[key]
        return self.parent.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self._local or key in self.parent
