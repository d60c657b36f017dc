"""Tests for the audit listener and repository."""

from contextlib import contextmanager

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from conftest import applicant
from underwriter.core.listeners.audit import AuditEventType, AuditListener, AuditRepository
from underwriter.core.service import DecisionService
from underwriter.db.models import Base


@pytest.fixture
def session_factory():
    """Context-managed sessions on a private in-memory database."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(bind=engine, expire_on_commit=False)

    @contextmanager
    def scope():
        db = Session()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    yield scope
    engine.dispose()


class TestAuditListener:
    """Tests for persisting evaluation events."""

    def test_records_successful_run(self, model, session_factory):
        """Should store the run, each decision, each table and each fired rule."""
        service = DecisionService(model, listeners=[AuditListener(session_factory)])
        result = service.evaluate(applicant(45, 20, 0, "Economy", 2020))

        with session_factory() as db:
            repo = AuditRepository(db)
            events = repo.list_events(correlation_id=result.correlation_id)
            types = [e.event_type for e in events]

            assert repo.count(result.correlation_id) == len(events)
            assert types.count(AuditEventType.EVALUATION_STARTED.value) == 1
            assert types.count(AuditEventType.EVALUATION_ENDED.value) == 1
            assert types.count(AuditEventType.DECISION_ENDED.value) == 3
            assert types.count(AuditEventType.TABLE_EVALUATED.value) == 3
            assert types.count(AuditEventType.RULE_FIRED.value) == 3

            ended = repo.list_events(
                correlation_id=result.correlation_id,
                event_type=AuditEventType.EVALUATION_ENDED,
            )[0]
            assert ended.status == "COMPLETED"
            assert ended.properties["results"]["Driver Risk Score"] == 20

            fired = repo.list_events(
                correlation_id=result.correlation_id,
                event_type=AuditEventType.RULE_FIRED,
            )
            assert {(e.table_name, e.rule_id) for e in fired} == {
                ("Driver Risk Score", 3),
                ("Vehicle Risk Factor", 1),
                ("Risk Classification", 1),
            }

    def test_records_failures(self, model, session_factory):
        """Should store decision errors and the failed status."""
        service = DecisionService(model, listeners=[AuditListener(session_factory)])
        result = service.evaluate(applicant(30, 8, 0, "Truck", 2020))

        with session_factory() as db:
            decisions = AuditRepository(db).list_events(
                correlation_id=result.correlation_id,
                event_type=AuditEventType.DECISION_ENDED,
            )
            by_name = {e.decision: e for e in decisions}
            assert by_name["Vehicle Risk Factor"].status == "FAILED"
            assert by_name["Vehicle Risk Factor"].properties["error"]["kind"] == "type_mismatch"
            assert by_name["Insurance Assessment"].status == "SKIPPED"

    def test_runs_are_kept_apart(self, model, session_factory):
        """Should group events by correlation id."""
        service = DecisionService(model, listeners=[AuditListener(session_factory)])
        first = service.evaluate(applicant(19, 1, 0), decision="Driver Risk Score")
        second = service.evaluate(applicant(45, 20, 0, "Economy", 2020))

        with session_factory() as db:
            repo = AuditRepository(db)
            assert repo.count(first.correlation_id) < repo.count(second.correlation_id)
            assert repo.count() == repo.count(first.correlation_id) + repo.count(second.correlation_id)

    def test_storage_failure_does_not_change_result(self, model):
        """Should leave the evaluation untouched when the database is down."""
        @contextmanager
        def unavailable():
            raise RuntimeError("database unavailable")
            yield

        failures = []
        service = DecisionService(
            model,
            listeners=[AuditListener(unavailable)],
            error_sink=failures.append,
        )
        result = service.evaluate(applicant(45, 20, 0, "Economy", 2020))

        assert result.succeeded
        assert failures
        assert all(f.listener == "audit" for f in failures)
