"""Listener that writes a human-readable evaluation trace to the log."""

from __future__ import annotations

import logging
from typing import Optional

from underwriter.core.decisions.events import (
    ContextEntryEnded,
    ContextEntryStarted,
    DecisionEnded,
    DecisionStarted,
    EvaluationEnded,
    EvaluationListener,
    EvaluationStarted,
    TableEnded,
    TableStarted,
)
from underwriter.core.decisions.models import SessionState

logger = logging.getLogger(__name__)

RULE = "═" * 66
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S.%f"


def _timestamp(event) -> str:
    return event.timestamp.strftime(TIMESTAMP_FORMAT)[:-3]


class LoggingListener(EvaluationListener):
    """Logs every milestone of an evaluation as a boxed trace."""

    name = "logging"

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logger

    def on_evaluation_started(self, event: EvaluationStarted) -> None:
        self.log.info(f"╔{RULE}")
        self.log.info(f"║ EVALUATION STARTED: {event.model}")
        self.log.info(f"║ Correlation ID: {event.correlation_id}")
        self.log.info(f"║ Timestamp: {_timestamp(event)}")
        self.log.info(f"╠{RULE}")
        self.log.info("║ INPUT DATA:")
        for key, value in event.inputs.items():
            self.log.info(f"║   {key} = {value}")
        self.log.info(f"╚{RULE}")

    def on_evaluation_ended(self, event: EvaluationEnded) -> None:
        self.log.info(f"╔{RULE}")
        self.log.info(f"║ EVALUATION {event.state.value}")
        self.log.info(f"║ Correlation ID: {event.correlation_id}")
        self.log.info(f"║ Timestamp: {_timestamp(event)}")
        self.log.info(f"╠{RULE}")
        self.log.info("║ DECISION RESULTS:")
        for name, result in event.results.items():
            self.log.info(f"║   Decision: {name}")
            self.log.info(f"║     - Result: {result}")
        if event.state == SessionState.FAILED:
            self.log.warning("║ EVALUATION ERRORS DETECTED:")
            for error in event.errors:
                self.log.warning(f"║   {error.decision}: {error.kind.value} - {error.message}")
        self.log.info(f"╚{RULE}")

    def on_decision_started(self, event: DecisionStarted) -> None:
        self.log.info(f"  ▶ Evaluating Decision: {event.decision}")

    def on_decision_ended(self, event: DecisionEnded) -> None:
        self.log.info(f"  ◀ Decision '{event.decision}' {event.status.value.lower()}")
        if event.error is not None:
            self.log.info(f"    └─ Error: {event.error.message}")
        else:
            self.log.info(f"    └─ Result: {event.result}")

    def on_table_started(self, event: TableStarted) -> None:
        self.log.debug(f"      ⊳ Evaluating Decision Table: {event.table}")

    def on_table_ended(self, event: TableEnded) -> None:
        self.log.info(f"      ⊲ Decision Table '{event.table}' completed")
        if event.matched_rule_ids:
            self.log.info(f"        └─ Rules Fired: {list(event.matched_rule_ids)}")
            self.log.info(f"        └─ Selected Result: {event.record.outputs}")

    def on_context_entry_started(self, event: ContextEntryStarted) -> None:
        self.log.debug(f"        ↳ Evaluating context entry: {event.entry}")

    def on_context_entry_ended(self, event: ContextEntryEnded) -> None:
        self.log.debug(f"        ↲ Context entry '{event.entry}' = {event.value}")
