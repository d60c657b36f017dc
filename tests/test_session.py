"""End-to-end tests for evaluation sessions against the bundled model."""

import pytest
import yaml

from conftest import applicant
from underwriter.core.decisions.errors import ErrorKind
from underwriter.core.decisions.events import EvaluationListener
from underwriter.core.decisions.loader import ModelLoader
from underwriter.core.decisions.models import DecisionStatus, SessionState
from underwriter.core.decisions.session import EvaluationSession
from underwriter.core.service import DecisionService


class RecordingListener(EvaluationListener):
    """Collects every event it receives."""

    def __init__(self):
        self.events = []

    def _keep(self, event):
        self.events.append(event)

    on_evaluation_started = _keep
    on_evaluation_ended = _keep
    on_decision_started = _keep
    on_decision_ended = _keep
    on_table_started = _keep
    on_table_ended = _keep
    on_match_created = _keep
    on_match_fired = _keep
    on_context_entry_started = _keep
    on_context_entry_ended = _keep

    @property
    def names(self):
        return [type(event).__name__ for event in self.events]


class ExplodingListener(EvaluationListener):
    """Raises from every hook."""

    def __getattribute__(self, name):
        if name.startswith("on_"):
            def explode(event):
                raise RuntimeError(f"boom in {name}")
            return explode
        return super().__getattribute__(name)


class TestScenarios:
    """Documented underwriting scenarios."""

    def test_young_driver_sports_car_is_high_risk(self, service):
        """Should classify a young driver with violations in a sports car as High."""
        result = service.evaluate(applicant(22, 2, 3, "Sports", 2023))

        assert result.state == SessionState.COMPLETED
        assert result.errors == []
        assert result.results["Driver Risk Score"] == 100
        assert result.results["Vehicle Risk Factor"] == pytest.approx(1.5)
        assessment = result.results["Insurance Assessment"]
        assert assessment["RiskCategory"] == "High"
        assert assessment["BasePremium"] == 2500
        assert assessment["Eligible"] is False
        assert assessment["RiskScore"] == pytest.approx(150.0)

    def test_experienced_driver_economy_car_is_low_risk(self, service):
        """Should classify a clean experienced driver in an economy car as Low."""
        result = service.evaluate(applicant(45, 20, 0, "Economy", 2020))

        assert result.results["Driver Risk Score"] == 20
        assert result.results["Vehicle Risk Factor"] == pytest.approx(0.9)
        assessment = result.results["Insurance Assessment"]
        assert assessment["RiskCategory"] == "Low"
        assert assessment["BasePremium"] == 800
        assert assessment["Eligible"] is True
        assert assessment["RiskScore"] == pytest.approx(18.0)

    def test_senior_driver_luxury_car_is_medium_risk(self, service):
        """Should classify a clean senior driver in a luxury car as Medium."""
        result = service.evaluate(applicant(72, 50, 0, "Luxury", 2022))

        assert result.results["Driver Risk Score"] == 60
        assert result.results["Vehicle Risk Factor"] == pytest.approx(1.3)
        assessment = result.results["Insurance Assessment"]
        assert assessment["RiskCategory"] == "Medium"
        assert assessment["BasePremium"] == 1500
        assert assessment["Eligible"] is True

    def test_adult_with_one_violation_standard_car(self, service):
        """Should keep an adult with one violation in a standard car Low and eligible."""
        result = service.evaluate(applicant(35, 10, 1, "Standard", 2018))

        assert result.results["Driver Risk Score"] == 40
        assert result.results["Insurance Assessment"] == {
            "RiskCategory": "Low",
            "BasePremium": 800,
            "RiskScore": pytest.approx(40.0),
            "Eligible": True,
        }

    @pytest.mark.parametrize(
        "age,experience,score",
        [(25, 5, 20), (24, 5, 80), (69, 44, 20), (70, 45, 60)],
    )
    def test_age_band_boundaries(self, service, age, experience, score):
        """Should switch bands exactly at 25 and 70."""
        result = service.evaluate(applicant(age, experience, 0), decision="Driver Risk Score")
        assert result.results == {"Driver Risk Score": score}

    @pytest.mark.parametrize(
        "category,year,factor",
        [("Economy", 2020, 0.9), ("Standard", 2001, 1.0), ("Sports", 2015, 1.5), ("Sports", 2014, 1.4)],
    )
    def test_vehicle_factors(self, service, category, year, factor):
        """Should map each vehicle category to one factor."""
        payload = applicant(40, 10, 0, category, year)
        result = service.evaluate(payload, decision="Vehicle Risk Factor")
        assert result.results["Vehicle Risk Factor"] == pytest.approx(factor)

    def test_rule_set_covers_valid_domain(self, service):
        """Should match exactly one rule per table for every valid applicant."""
        for age in (16, 20, 25, 40, 69, 70, 95, 120):
            for violations in (0, 1, 2, 3, 7):
                for category in ("Economy", "Standard", "Luxury", "Sports"):
                    result = service.evaluate(applicant(age, 4, violations, category, 2016))
                    assert result.succeeded, (age, violations, category, result.errors)
                    assert all(len(r.matched_rule_ids) == 1 for r in result.match_records)


class TestSingleDecisionQuery:
    """Tests for evaluating one decision and its dependencies."""

    def test_driver_only_input(self, service):
        """Should score a driver without any vehicle data."""
        result = service.evaluate(applicant(19, 1, 0), decision="Driver Risk Score")

        assert result.state == SessionState.COMPLETED
        assert result.results == {"Driver Risk Score": 80}
        assert [o.decision for o in result.outcomes] == ["Driver Risk Score"]

    def test_evaluates_dependency_closure(self, service):
        """Should run the dependencies but report only the requested decision."""
        result = service.evaluate(applicant(45, 20, 0, "Economy", 2020), decision="Insurance Assessment")

        assert list(result.results) == ["Insurance Assessment"]
        assert [o.decision for o in result.outcomes] == [
            "Driver Risk Score",
            "Vehicle Risk Factor",
            "Insurance Assessment",
        ]

    def test_unknown_decision(self, service):
        """Should raise KeyError for decisions not in the model."""
        with pytest.raises(KeyError):
            service.evaluate(applicant(30, 5, 0), decision="Credit Score")


class TestErrorPaths:
    """Tests for errors captured on the result."""

    def test_unknown_category_cascades(self, service):
        """Should fail the vehicle factor and skip the assessment."""
        result = service.evaluate(applicant(30, 8, 0, "Truck", 2020))

        assert result.state == SessionState.FAILED
        assert result.results == {"Driver Risk Score": 20}
        assert result.outcome("Driver Risk Score").status == DecisionStatus.SUCCEEDED

        vehicle = result.outcome("Vehicle Risk Factor")
        assert vehicle.status == DecisionStatus.FAILED
        assert vehicle.error.kind == ErrorKind.TYPE_MISMATCH

        assessment = result.outcome("Insurance Assessment")
        assert assessment.status == DecisionStatus.SKIPPED
        assert assessment.error.kind == ErrorKind.MISSING_DEPENDENCY
        assert "Vehicle Risk Factor" in assessment.error.message
        assert [e.decision for e in result.errors] == ["Vehicle Risk Factor", "Insurance Assessment"]

    def test_uncovered_age(self, service):
        """Should report UncoveredInput for drivers under 16."""
        result = service.evaluate(applicant(14, 0, 0, "Economy", 2020))

        assert result.outcome("Driver Risk Score").error.kind == ErrorKind.UNCOVERED_INPUT
        assert result.outcome("Vehicle Risk Factor").status == DecisionStatus.SUCCEEDED
        assert result.outcome("Insurance Assessment").status == DecisionStatus.SKIPPED

    def test_missing_vehicle_is_uncovered(self, service):
        """Should never guess a factor for a missing vehicle."""
        result = service.evaluate(applicant(30, 8, 0))

        assert result.outcome("Vehicle Risk Factor").error.kind == ErrorKind.UNCOVERED_INPUT
        assert "Vehicle Risk Factor" not in result.results

    def test_unsupported_input_value_fails_its_decision(self, model):
        """Should report a list-valued field as a type mismatch on the decision reading it."""
        payload = applicant(35, 10, 0, "Standard", 2020)
        payload["Driver"]["Age"] = [35]
        session = EvaluationSession(model)

        result = session.run(payload)

        assert session.state == SessionState.FAILED
        driver = result.outcome("Driver Risk Score")
        assert driver.status == DecisionStatus.FAILED
        assert driver.error.kind == ErrorKind.TYPE_MISMATCH
        assert "Driver.Age" in driver.error.message
        assert result.outcome("Vehicle Risk Factor").status == DecisionStatus.SUCCEEDED
        assert result.outcome("Insurance Assessment").status == DecisionStatus.SKIPPED

    def test_ambiguous_rules(self):
        """Should list every conflicting rule id."""
        model = ModelLoader().parse(
            yaml.safe_load(
                """
                name: Overlap
                inputs: {Driver: {Age: integer}}
                decisions:
                  - name: Band
                    table:
                      inputs: [{name: Age, key: Driver.Age}]
                      outputs: [Band]
                      rules:
                        - {when: [{interval: {low: 16, high: 30}}], then: [young]}
                        - {when: [{interval: {low: 25}}], then: [adult]}
                """
            )
        )
        result = DecisionService(model).evaluate({"Driver": {"Age": 27}})

        error = result.errors[0]
        assert error.kind == ErrorKind.AMBIGUOUS_MATCH
        assert error.rule_ids == [1, 2]
        assert result.match_records[0].matched_rule_ids == [1, 2]
        assert result.match_records[0].selected_rule_id is None


class TestSessionLifecycle:
    """Tests for the session state machine and trace."""

    def test_state_transitions(self, model):
        """Should move from NOT_STARTED to COMPLETED."""
        session = EvaluationSession(model)
        assert session.state == SessionState.NOT_STARTED
        result = session.run(applicant(45, 20, 0, "Economy", 2020))
        assert session.state == SessionState.COMPLETED
        assert result.ended_at >= result.started_at

    def test_sessions_are_single_use(self, model):
        """Should refuse to run a session twice."""
        session = EvaluationSession(model)
        session.run(applicant(45, 20, 0, "Economy", 2020))
        with pytest.raises(RuntimeError):
            session.run(applicant(45, 20, 0, "Economy", 2020))

    def test_correlation_ids_are_fresh(self, service):
        """Should give each run its own short correlation id."""
        first = service.evaluate(applicant(45, 20, 0, "Economy", 2020))
        second = service.evaluate(applicant(45, 20, 0, "Economy", 2020))
        assert len(first.correlation_id) == 8
        assert first.correlation_id != second.correlation_id

    def test_idempotent(self, service):
        """Should produce identical outputs and match records for the same input."""
        payload = applicant(22, 2, 3, "Sports", 2023)
        first = service.evaluate(payload)
        second = service.evaluate(payload)

        assert first.results == second.results
        assert first.match_records == second.match_records
        assert [(r.table, r.selected_rule_id) for r in first.match_records] == [
            ("Driver Risk Score", 2),
            ("Vehicle Risk Factor", 4),
            ("Risk Classification", 3),
        ]

    def test_event_sequence(self, service):
        """Should deliver events in evaluation order."""
        listener = RecordingListener()
        service.evaluate(applicant(45, 20, 0, "Economy", 2020), listeners=[listener])

        names = listener.names
        assert names[0] == "EvaluationStarted"
        assert names[-1] == "EvaluationEnded"
        assert names[1:8] == [
            "DecisionStarted",
            "TableStarted",
            "MatchCreated",
            "MatchFired",
            "TableEnded",
            "DecisionEnded",
            "DecisionStarted",
        ]
        assert names.count("ContextEntryStarted") == 2
        assert names.count("TableEnded") == 3
        assert {event.correlation_id for event in listener.events} == {
            listener.events[0].correlation_id
        }

    def test_started_event_carries_input_snapshot(self, service):
        """Should include every declared input in the started event."""
        listener = RecordingListener()
        service.evaluate(applicant(19, 1, 0), decision="Driver Risk Score", listeners=[listener])

        started = listener.events[0]
        assert started.inputs["Driver.Age"] == 19
        assert started.inputs["Vehicle.Category"] is None

    def test_skipped_decisions_still_notify(self, service):
        """Should report skipped decisions through decision events."""
        listener = RecordingListener()
        service.evaluate(applicant(30, 8, 0, "Truck", 2020), listeners=[listener])

        ended = [e for e in listener.events if type(e).__name__ == "DecisionEnded"]
        assert [(e.decision, e.status) for e in ended] == [
            ("Driver Risk Score", DecisionStatus.SUCCEEDED),
            ("Vehicle Risk Factor", DecisionStatus.FAILED),
            ("Insurance Assessment", DecisionStatus.SKIPPED),
        ]


class TestListenerIsolation:
    """Tests for failing listeners."""

    @pytest.mark.parametrize(
        "payload",
        [
            applicant(22, 2, 3, "Sports", 2023),
            applicant(45, 20, 0, "Economy", 2020),
            applicant(30, 8, 0, "Truck", 2020),
        ],
    )
    def test_raising_listener_changes_nothing(self, model, payload):
        """Should produce the same result with a listener that always raises."""
        failures = []
        baseline = DecisionService(model).evaluate(payload)
        noisy = DecisionService(
            model,
            listeners=[ExplodingListener()],
            error_sink=failures.append,
        ).evaluate(payload)

        assert noisy.state == baseline.state
        assert noisy.results == baseline.results
        assert noisy.errors == baseline.errors
        assert noisy.match_records == baseline.match_records
        assert failures
        assert all(isinstance(f.error, RuntimeError) for f in failures)

    def test_later_listeners_still_run(self, service):
        """Should keep delivering to listeners registered after a failing one."""
        recorder = RecordingListener()
        service.error_sink = lambda failure: None
        service.evaluate(applicant(45, 20, 0, "Economy", 2020), listeners=[ExplodingListener(), recorder])
        assert recorder.names[-1] == "EvaluationEnded"

    def test_failing_error_sink_is_contained(self, model):
        """Should survive an error sink that raises too."""
        def broken_sink(failure):
            raise ValueError("sink down")

        result = DecisionService(model, [ExplodingListener()], error_sink=broken_sink).evaluate(
            applicant(45, 20, 0, "Economy", 2020)
        )
        assert result.succeeded
