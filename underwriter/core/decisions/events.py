"""Evaluation events and the listener interface."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .models import DecisionFailure, DecisionStatus, SessionState
from .tables import MatchRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EvaluationStarted:
    correlation_id: str
    model: str
    timestamp: datetime
    inputs: Dict[str, Any]


@dataclass(frozen=True)
class EvaluationEnded:
    correlation_id: str
    model: str
    timestamp: datetime
    state: SessionState
    results: Dict[str, Any]
    errors: Tuple[DecisionFailure, ...] = ()


@dataclass(frozen=True)
class DecisionStarted:
    correlation_id: str
    decision: str


@dataclass(frozen=True)
class DecisionEnded:
    correlation_id: str
    decision: str
    status: DecisionStatus
    result: Any = None
    error: Optional[DecisionFailure] = None


@dataclass(frozen=True)
class TableStarted:
    correlation_id: str
    decision: str
    table: str


@dataclass(frozen=True)
class TableEnded:
    correlation_id: str
    decision: str
    table: str
    record: MatchRecord
    inputs: Dict[str, Any] = field(default_factory=dict)

    @property
    def matched_rule_ids(self) -> Tuple[int, ...]:
        return self.record.matched_rule_ids

    @property
    def selected_rule_id(self) -> Optional[int]:
        return self.record.selected_rule_id


@dataclass(frozen=True)
class MatchCreated:
    """A rule's conditions all held for the current input."""

    correlation_id: str
    decision: str
    table: str
    rule_id: int


@dataclass(frozen=True)
class MatchFired:
    """A matched rule was selected and its outputs produced."""

    correlation_id: str
    decision: str
    table: str
    rule_id: int
    outputs: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ContextEntryStarted:
    correlation_id: str
    decision: str
    entry: str


@dataclass(frozen=True)
class ContextEntryEnded:
    correlation_id: str
    decision: str
    entry: str
    value: Any = None


class EvaluationListener:
    """Observer of evaluation milestones.

    Subclasses override only the hooks they care about; every hook defaults
    to a no-op. Hooks are called synchronously in registration order.
    """

    name: str = ""

    def on_evaluation_started(self, event: EvaluationStarted) -> None:
        pass

    def on_evaluation_ended(self, event: EvaluationEnded) -> None:
        pass

    def on_decision_started(self, event: DecisionStarted) -> None:
        pass

    def on_decision_ended(self, event: DecisionEnded) -> None:
        pass

    def on_table_started(self, event: TableStarted) -> None:
        pass

    def on_table_ended(self, event: TableEnded) -> None:
        pass

    def on_match_created(self, event: MatchCreated) -> None:
        pass

    def on_match_fired(self, event: MatchFired) -> None:
        pass

    def on_context_entry_started(self, event: ContextEntryStarted) -> None:
        pass

    def on_context_entry_ended(self, event: ContextEntryEnded) -> None:
        pass

    @property
    def display_name(self) -> str:
        return self.name or type(self).__name__


# Event type -> listener hook
HOOKS: Dict[type, str] = {
    EvaluationStarted: "on_evaluation_started",
    EvaluationEnded: "on_evaluation_ended",
    DecisionStarted: "on_decision_started",
    DecisionEnded: "on_decision_ended",
    TableStarted: "on_table_started",
    TableEnded: "on_table_ended",
    MatchCreated: "on_match_created",
    MatchFired: "on_match_fired",
    ContextEntryStarted: "on_context_entry_started",
    ContextEntryEnded: "on_context_entry_ended",
}


@dataclass(frozen=True)
class ListenerFailure:
    """A listener hook that raised."""

    listener: str
    hook: str
    error: BaseException


ErrorSink = Callable[[ListenerFailure], None]


def log_listener_failure(failure: ListenerFailure) -> None:
    """Default error sink: log and carry on."""
    logger.error(
        f"Listener {failure.listener} failed in {failure.hook}: {failure.error}",
        exc_info=failure.error,
    )


class ListenerDispatcher:
    """Delivers events to listeners in order, isolating their failures."""

    def __init__(
        self,
        listeners: Sequence[EvaluationListener] = (),
        error_sink: Optional[ErrorSink] = None,
    ):
        self.listeners: List[EvaluationListener] = list(listeners)
        self.error_sink = error_sink or log_listener_failure
        self.failures: List[ListenerFailure] = []

    def dispatch(self, event: Any) -> None:
        hook = HOOKS[type(event)]
        for listener in self.listeners:
            try:
                getattr(listener, hook)(event)
            except Exception as e:
                failure = ListenerFailure(
                    listener=getattr(listener, "display_name", type(listener).__name__),
                    hook=hook,
                    error=e,
                )
                self.failures.append(failure)
                try:
                    self.error_sink(failure)
                except Exception:
                    logger.exception("Listener error sink raised")
