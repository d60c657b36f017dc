"""Decision table engine: values, tables, graph and evaluation sessions."""

from .values import Value, ValueKind, FieldType, NULL
from .errors import (
    ErrorKind,
    DecisionError,
    UncoveredInputError,
    AmbiguousMatchError,
    TypeMismatchError,
    MissingDependencyError,
    CyclicGraphError,
    ModelDefinitionError,
)
from .context import FactContext
from .conditions import (
    Condition,
    WildcardCondition,
    EqualsCondition,
    IntervalCondition,
    MembershipCondition,
    WILDCARD,
    matches,
    parse_condition,
)
from .tables import DecisionTable, HitPolicy, InputColumn, OutputColumn, Rule, MatchRecord
from .functions import FUNCTIONS, get_function, AggregationFunction
from .graph import (
    DecisionNode,
    TableDecision,
    ContextDecision,
    ContextEntry,
    DecisionGraph,
    DecisionModel,
)
from .models import (
    SessionState,
    DecisionStatus,
    DecisionFailure,
    DecisionOutcome,
    EvaluationResult,
)
from .events import EvaluationListener, ListenerDispatcher, ListenerFailure
from .session import EvaluationSession
from .loader import ModelLoader, load_model

__all__ = [
    "Value",
    "ValueKind",
    "FieldType",
    "NULL",
    "ErrorKind",
    "DecisionError",
    "UncoveredInputError",
    "AmbiguousMatchError",
    "TypeMismatchError",
    "MissingDependencyError",
    "CyclicGraphError",
    "ModelDefinitionError",
    "FactContext",
    "Condition",
    "WildcardCondition",
    "EqualsCondition",
    "IntervalCondition",
    "MembershipCondition",
    "WILDCARD",
    "matches",
    "parse_condition",
    "DecisionTable",
    "HitPolicy",
    "InputColumn",
    "OutputColumn",
    "Rule",
    "MatchRecord",
    "FUNCTIONS",
    "get_function",
    "AggregationFunction",
    "DecisionNode",
    "TableDecision",
    "ContextDecision",
    "ContextEntry",
    "DecisionGraph",
    "DecisionModel",
    "SessionState",
    "DecisionStatus",
    "DecisionFailure",
    "DecisionOutcome",
    "EvaluationResult",
    "EvaluationListener",
    "ListenerDispatcher",
    "ListenerFailure",
    "EvaluationSession",
    "ModelLoader",
    "load_model",
]
