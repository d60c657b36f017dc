"""Decision nodes and the acyclic graph that orders them."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Set, Tuple

from .context import ChildScope, FactContext
from .errors import (
    CyclicGraphError,
    MissingDependencyError,
    ModelDefinitionError,
    TypeMismatchError,
)
from .functions import get_function
from .tables import DecisionTable, Scope, TableOutcome
from .values import FieldType, Value


class NodeTracer(Protocol):
    """Callbacks a node uses to report its internal milestones."""

    def table_started(self, decision: str, table: DecisionTable) -> None:
        ...

    def table_ended(self, decision: str, table: DecisionTable, outcome: TableOutcome) -> None:
        ...

    def entry_started(self, decision: str, entry: str) -> None:
        ...

    def entry_ended(self, decision: str, entry: str, value: Any) -> None:
        ...


def _scan(table: DecisionTable, scope: Scope, decision: str, tracer: NodeTracer) -> TableOutcome:
    tracer.table_started(decision, table)
    outcome = table.evaluate(scope, decision=decision)
    tracer.table_ended(decision, table, outcome)
    return outcome


class NodeKind(str, Enum):
    TABLE = "table"
    CONTEXT = "context"


@dataclass(frozen=True)
class DecisionNode:
    """A named decision and the decisions it reads from."""

    name: str
    requires: Tuple[str, ...] = ()

    @property
    def kind(self) -> NodeKind:
        raise NotImplementedError

    def tables(self) -> Tuple[DecisionTable, ...]:
        return ()

    def evaluate(self, facts: FactContext, tracer: NodeTracer) -> Any:
        """Compute the node's output from the fact context.

        Returns:
            A Value for single-output decisions, or a dict of column -> Value

        Raises:
            DecisionError: if the decision cannot be made
        """
        raise NotImplementedError


@dataclass(frozen=True)
class TableDecision(DecisionNode):
    """A decision whose logic is one decision table."""

    table: Optional[DecisionTable] = None

    def __post_init__(self):
        if self.table is None:
            raise ModelDefinitionError(f"Decision '{self.name}' has no table")

    @property
    def kind(self) -> NodeKind:
        return NodeKind.TABLE

    def tables(self) -> Tuple[DecisionTable, ...]:
        return (self.table,)

    def evaluate(self, facts: FactContext, tracer: NodeTracer) -> Any:
        outcome = _scan(self.table, facts, self.name, tracer)
        if outcome.error is not None:
            raise outcome.error
        return outcome.output


class EntryKind(str, Enum):
    FUNCTION = "function"
    TABLE = "table"


@dataclass(frozen=True)
class ContextEntry:
    """One step of a context decision.

    A function entry applies a registered aggregation to fact keys and stores
    the result under ``name``. A table entry scans an embedded table; a
    single-output table is stored under ``name``, otherwise each output
    column is stored under its column name.
    """

    name: str
    function: Optional[str] = None
    args: Tuple[str, ...] = ()
    table: Optional[DecisionTable] = None

    def __post_init__(self):
        if (self.function is None) == (self.table is None):
            raise ModelDefinitionError(
                f"Context entry '{self.name}' needs exactly one of 'function' or 'table'"
            )
        if self.function is not None and get_function(self.function) is None:
            raise ModelDefinitionError(f"Unknown function '{self.function}' in entry '{self.name}'")
        if self.function is not None and not self.args:
            raise ModelDefinitionError(
                f"Context entry '{self.name}' calls {self.function}() without arguments"
            )

    @property
    def kind(self) -> EntryKind:
        return EntryKind.FUNCTION if self.function is not None else EntryKind.TABLE

    def provides(self) -> Tuple[str, ...]:
        if self.table is not None and not self.table.single_output:
            return tuple(col.name for col in self.table.outputs)
        return (self.name,)

    def evaluate(self, scope: ChildScope, decision: str, tracer: NodeTracer) -> Dict[str, Value]:
        if self.function is not None:
            missing = [key for key in self.args if scope.get(key) is None]
            if missing:
                raise MissingDependencyError(missing, decision)
            args = [scope.get(key) for key in self.args]
            if any(arg.is_null for arg in args):
                raise MissingDependencyError(
                    [key for key, arg in zip(self.args, args) if arg.is_null], decision
                )
            try:
                return {self.name: get_function(self.function)(args)}
            except TypeError as e:
                raise TypeMismatchError(
                    f"context entry '{self.name}'",
                    ", ".join(self.args),
                    str(e),
                    ["integer", "real"],
                    decision,
                ) from e

        outcome = _scan(self.table, scope, decision, tracer)
        if outcome.error is not None:
            raise outcome.error
        if isinstance(outcome.output, dict):
            return dict(outcome.output)
        return {self.name: outcome.output}


@dataclass(frozen=True)
class ContextDecision(DecisionNode):
    """A derived decision built from ordered context entries."""

    entries: Tuple[ContextEntry, ...] = ()
    result: Tuple[str, ...] = ()

    def __post_init__(self):
        if not self.entries:
            raise ModelDefinitionError(f"Context decision '{self.name}' has no entries")
        provided: List[str] = []
        for entry in self.entries:
            duplicates = [key for key in entry.provides() if key in provided]
            if duplicates:
                raise ModelDefinitionError(
                    f"Decision '{self.name}' sets context entries more than once: {duplicates}"
                )
            provided.extend(entry.provides())
        result = self.result or tuple(provided)
        unknown = [key for key in result if key not in provided]
        if unknown:
            raise ModelDefinitionError(
                f"Decision '{self.name}' result refers to unknown entries: {unknown}"
            )
        object.__setattr__(self, "result", tuple(result))

    @property
    def kind(self) -> NodeKind:
        return NodeKind.CONTEXT

    @property
    def single_output(self) -> bool:
        return len(self.result) == 1

    def tables(self) -> Tuple[DecisionTable, ...]:
        return tuple(entry.table for entry in self.entries if entry.table is not None)

    def evaluate(self, facts: FactContext, tracer: NodeTracer) -> Any:
        scope = ChildScope(facts)
        for entry in self.entries:
            tracer.entry_started(self.name, entry.name)
            produced = entry.evaluate(scope, self.name, tracer)
            for key, value in produced.items():
                scope.set(key, value)
            if len(produced) == 1 and entry.name in produced:
                shown: Any = produced[entry.name].to_python()
            else:
                shown = {k: v.to_python() for k, v in produced.items()}
            tracer.entry_ended(self.name, entry.name, shown)

        if self.single_output:
            return scope.get(self.result[0])
        return {key: scope.get(key) for key in self.result}


@dataclass(frozen=True)
class DecisionGraph:
    """Decision nodes plus a deterministic topological order.

    Raises CyclicGraphError on construction if the dependencies loop.
    """

    nodes: Tuple[DecisionNode, ...]
    order: Tuple[str, ...] = field(init=False, compare=False)
    by_name: Mapping[str, DecisionNode] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        by_name: Dict[str, DecisionNode] = {}
        for node in self.nodes:
            if node.name in by_name:
                raise ModelDefinitionError(f"Duplicate decision '{node.name}'")
            by_name[node.name] = node
        for node in self.nodes:
            for dep in node.requires:
                if dep not in by_name:
                    raise ModelDefinitionError(
                        f"Decision '{node.name}' requires unknown decision '{dep}'"
                    )
        object.__setattr__(self, "by_name", MappingProxyType(by_name))
        object.__setattr__(self, "order", self._topological_order())

    def _topological_order(self) -> Tuple[str, ...]:
        """Kahn's algorithm; ties broken by declaration order."""
        remaining = {node.name: set(node.requires) for node in self.nodes}
        order: List[str] = []
        while remaining:
            ready = [node.name for node in self.nodes
                     if node.name in remaining and not remaining[node.name]]
            if not ready:
                raise CyclicGraphError(self._find_cycle(remaining))
            name = ready[0]
            order.append(name)
            del remaining[name]
            for deps in remaining.values():
                deps.discard(name)
        return tuple(order)

    def _find_cycle(self, remaining: Mapping[str, Set[str]]) -> List[str]:
        start = next(node.name for node in self.nodes if node.name in remaining)
        path: List[str] = [start]
        seen = {start: 0}
        current = start
        while True:
            node = self.by_name[current]
            current = next(dep for dep in node.requires if dep in remaining)
            if current in seen:
                return path[seen[current]:] + [current]
            seen[current] = len(path)
            path.append(current)

    def __contains__(self, name: object) -> bool:
        return name in self.by_name

    def get(self, name: str) -> Optional[DecisionNode]:
        return self.by_name.get(name)

    def closure(self, name: str) -> Set[str]:
        """The named decision plus everything it transitively depends on."""
        if name not in self.by_name:
            raise KeyError(f"Unknown decision '{name}'")
        seen: Set[str] = set()
        stack = [name]
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self.by_name[current].requires)
        return seen

    def plan(self, targets: Optional[Sequence[str]] = None) -> Tuple[DecisionNode, ...]:
        """Nodes to evaluate, in order, for the given targets (all if None)."""
        if not targets:
            return tuple(self.by_name[name] for name in self.order)
        wanted: Set[str] = set()
        for target in targets:
            wanted |= self.closure(target)
        return tuple(self.by_name[name] for name in self.order if name in wanted)


@dataclass(frozen=True)
class DecisionModel:
    """A loaded decision model: input schema plus decision graph."""

    name: str
    graph: DecisionGraph
    namespace: str = ""
    description: str = ""
    inputs: Mapping[str, FieldType] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def decision_names(self) -> Tuple[str, ...]:
        return self.graph.order

