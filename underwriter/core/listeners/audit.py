"""Audit trail: persists evaluation events to the database."""

from __future__ import annotations

import logging
from contextlib import AbstractContextManager
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from underwriter.core.decisions.events import (
    DecisionEnded,
    DecisionStarted,
    EvaluationEnded,
    EvaluationListener,
    EvaluationStarted,
    MatchFired,
    TableEnded,
)
from underwriter.db.models import DecisionAuditEvent

logger = logging.getLogger(__name__)


class AuditEventType(str, Enum):
    """Types of audited events."""

    EVALUATION_STARTED = "evaluation.started"
    EVALUATION_ENDED = "evaluation.ended"
    DECISION_STARTED = "decision.started"
    DECISION_ENDED = "decision.ended"
    TABLE_EVALUATED = "table.evaluated"
    RULE_FIRED = "rule.fired"


class AuditRepository:
    """Repository for audit event rows."""

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        correlation_id: str,
        event_type: AuditEventType,
        model: Optional[str] = None,
        decision: Optional[str] = None,
        table_name: Optional[str] = None,
        rule_id: Optional[int] = None,
        status: Optional[str] = None,
        properties: Optional[Dict[str, Any]] = None,
        timestamp: Optional[datetime] = None,
    ) -> DecisionAuditEvent:
        """Store one audit event.

        Args:
            correlation_id: Id of the evaluation the event belongs to
            event_type: Type of event
            model: Decision model name
            decision: Decision node name, if any
            table_name: Decision table name, if any
            rule_id: Rule id for rule-level events
            status: Decision or session status
            properties: Event-specific JSON payload

        Returns:
            Created DecisionAuditEvent
        """
        event = DecisionAuditEvent(
            correlation_id=correlation_id,
            event_type=event_type.value,
            model=model,
            decision=decision,
            table_name=table_name,
            rule_id=rule_id,
            status=status,
            properties=properties or {},
            timestamp=timestamp or datetime.utcnow(),
        )
        self.db.add(event)
        self.db.flush()
        return event

    def list_events(
        self,
        correlation_id: Optional[str] = None,
        event_type: Optional[AuditEventType] = None,
        limit: int = 100,
    ) -> List[DecisionAuditEvent]:
        """List events, newest first unless filtered to one evaluation."""
        query = self.db.query(DecisionAuditEvent)
        if event_type is not None:
            query = query.filter(DecisionAuditEvent.event_type == event_type.value)
        if correlation_id:
            query = query.filter(DecisionAuditEvent.correlation_id == correlation_id)
            # Events of a single run read best in the order they happened
            query = query.order_by(DecisionAuditEvent.timestamp.asc())
        else:
            query = query.order_by(DecisionAuditEvent.timestamp.desc())
        return query.limit(limit).all()

    def count(self, correlation_id: Optional[str] = None) -> int:
        query = self.db.query(DecisionAuditEvent)
        if correlation_id:
            query = query.filter(DecisionAuditEvent.correlation_id == correlation_id)
        return query.count()


SessionFactory = Callable[[], AbstractContextManager]


class AuditListener(EvaluationListener):
    """Writes evaluation, decision, table and rule events to the audit table.

    Each event is stored in its own database transaction, so a failing write
    only loses that event.
    """

    name = "audit"

    def __init__(self, session_factory: Optional[SessionFactory] = None):
        if session_factory is None:
            from underwriter.db.database import get_db

            session_factory = get_db
        self.session_factory = session_factory

    def _record(self, correlation_id: str, event_type: AuditEventType, **fields: Any) -> None:
        with self.session_factory() as db:
            AuditRepository(db).record(correlation_id, event_type, **fields)
        logger.debug(f"Audit: {event_type.value} correlation_id={correlation_id}")

    def on_evaluation_started(self, event: EvaluationStarted) -> None:
        self._record(
            event.correlation_id,
            AuditEventType.EVALUATION_STARTED,
            model=event.model,
            properties={"inputs": event.inputs},
            timestamp=event.timestamp,
        )

    def on_evaluation_ended(self, event: EvaluationEnded) -> None:
        self._record(
            event.correlation_id,
            AuditEventType.EVALUATION_ENDED,
            model=event.model,
            status=event.state.value,
            properties={
                "results": event.results,
                "errors": [error.model_dump(mode="json") for error in event.errors],
            },
            timestamp=event.timestamp,
        )

    def on_decision_started(self, event: DecisionStarted) -> None:
        self._record(event.correlation_id, AuditEventType.DECISION_STARTED, decision=event.decision)

    def on_decision_ended(self, event: DecisionEnded) -> None:
        properties: Dict[str, Any] = {"result": event.result}
        if event.error is not None:
            properties["error"] = event.error.model_dump(mode="json")
        self._record(
            event.correlation_id,
            AuditEventType.DECISION_ENDED,
            decision=event.decision,
            status=event.status.value,
            properties=properties,
        )

    def on_table_ended(self, event: TableEnded) -> None:
        self._record(
            event.correlation_id,
            AuditEventType.TABLE_EVALUATED,
            decision=event.decision,
            table_name=event.table,
            rule_id=event.selected_rule_id,
            properties={"inputs": event.inputs, **event.record.to_dict()},
        )

    def on_match_fired(self, event: MatchFired) -> None:
        self._record(
            event.correlation_id,
            AuditEventType.RULE_FIRED,
            decision=event.decision,
            table_name=event.table,
            rule_id=event.rule_id,
            properties={"outputs": event.outputs},
        )
