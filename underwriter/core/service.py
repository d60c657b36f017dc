"""Decision service: owns the loaded model and its listeners."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, List, Mapping, Optional, Sequence

from underwriter.config import get_settings
from underwriter.core.decisions.events import ErrorSink, EvaluationListener
from underwriter.core.decisions.graph import DecisionModel
from underwriter.core.decisions.loader import load_model
from underwriter.core.decisions.models import EvaluationResult
from underwriter.core.decisions.session import EvaluationSession
from underwriter.core.listeners import AuditListener, LoggingListener

logger = logging.getLogger(__name__)


def build_listeners(
    log_evaluations: bool = True,
    audit_enabled: bool = False,
) -> List[EvaluationListener]:
    """Build the configured built-in listeners, in dispatch order."""
    listeners: List[EvaluationListener] = []
    if log_evaluations:
        listeners.append(LoggingListener())
    if audit_enabled:
        from underwriter.db.database import init_db

        init_db()
        listeners.append(AuditListener())
        logger.debug("Audit listener enabled")
    return listeners


class DecisionService:
    """Runs evaluation sessions against one immutable decision model."""

    def __init__(
        self,
        model: DecisionModel,
        listeners: Optional[Sequence[EvaluationListener]] = None,
        error_sink: Optional[ErrorSink] = None,
    ):
        """Initialize the decision service.

        Args:
            model: Loaded decision model, shared by every session
            listeners: Listeners notified by every session, in order
            error_sink: Receives listener failures (logged by default)
        """
        self.model = model
        self.listeners: List[EvaluationListener] = list(listeners or [])
        self.error_sink = error_sink

    def register(self, listener: EvaluationListener) -> None:
        """Add a listener for sessions started after this call."""
        self.listeners.append(listener)

    def has_decision(self, name: str) -> bool:
        return name in self.model.graph

    def evaluate(
        self,
        inputs: Mapping[str, Any],
        decision: Optional[str] = None,
        listeners: Sequence[EvaluationListener] = (),
        correlation_id: Optional[str] = None,
    ) -> EvaluationResult:
        """Evaluate the model, or a single decision and its dependencies.

        Args:
            inputs: Input groups, e.g. ``{"Driver": {"Age": 35}}``
            decision: Name of the only decision to report, if any
            listeners: Extra listeners for this evaluation only
            correlation_id: Id to use instead of a generated one

        Returns:
            Evaluation result; evaluation errors are reported on it

        Raises:
            KeyError: if ``decision`` is not part of the model
        """
        if decision is not None and not self.has_decision(decision):
            raise KeyError(f"Unknown decision '{decision}'")

        session = EvaluationSession(
            self.model,
            listeners=[*self.listeners, *listeners],
            error_sink=self.error_sink,
            correlation_id=correlation_id,
        )
        result = session.run(inputs, decision=decision)
        logger.info(
            f"Evaluation {result.correlation_id} of '{self.model.name}' "
            f"{result.state.value.lower()} with {len(result.errors)} error(s)"
        )
        return result


@lru_cache
def get_decision_service() -> DecisionService:
    """Process-wide service for the configured model."""
    settings = get_settings()
    model = load_model(settings.model_path)
    return DecisionService(
        model,
        listeners=build_listeners(
            log_evaluations=settings.log_evaluations,
            audit_enabled=settings.audit_enabled,
        ),
    )
