"""Rule execution statistics."""

from __future__ import annotations

import threading
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Tuple

from underwriter.core.decisions.events import (
    EvaluationEnded,
    EvaluationListener,
    MatchCreated,
    MatchFired,
)
from underwriter.core.decisions.models import SessionState


@dataclass
class StatisticsSnapshot:
    """Point-in-time copy of the counters."""

    evaluations: int = 0
    failed_evaluations: int = 0
    matches_created: int = 0
    rules_fired: int = 0
    fired_by_rule: Dict[Tuple[str, int], int] = field(default_factory=dict)

    @property
    def rules_skipped(self) -> int:
        """Matches that did not lead to a fired rule."""
        return self.matches_created - self.rules_fired


class RuleStatistics:
    """Thread-safe counters owned by the caller.

    One instance may be shared by listeners of concurrent sessions.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._evaluations = 0
        self._failed = 0
        self._matches = 0
        self._fired = 0
        self._by_rule: Counter = Counter()

    def record_match(self) -> None:
        with self._lock:
            self._matches += 1

    def record_fired(self, table: str, rule_id: int) -> None:
        with self._lock:
            self._fired += 1
            self._by_rule[(table, rule_id)] += 1

    def record_evaluation(self, failed: bool) -> None:
        with self._lock:
            self._evaluations += 1
            if failed:
                self._failed += 1

    def snapshot(self) -> StatisticsSnapshot:
        with self._lock:
            return StatisticsSnapshot(
                evaluations=self._evaluations,
                failed_evaluations=self._failed,
                matches_created=self._matches,
                rules_fired=self._fired,
                fired_by_rule=dict(self._by_rule),
            )

    def reset(self) -> None:
        with self._lock:
            self._evaluations = 0
            self._failed = 0
            self._matches = 0
            self._fired = 0
            self._by_rule.clear()

    def summary(self) -> str:
        """Short text report of the counters."""
        snap = self.snapshot()
        return (
            "Rules Execution Summary:\n"
            f"  - Rules Matched: {snap.matches_created}\n"
            f"  - Rules Fired: {snap.rules_fired}\n"
            f"  - Rules Skipped: {snap.rules_skipped}"
        )


class RuleStatisticsListener(EvaluationListener):
    """Feeds match and fire events into a RuleStatistics object."""

    name = "statistics"

    def __init__(self, statistics: RuleStatistics):
        self.statistics = statistics

    def on_match_created(self, event: MatchCreated) -> None:
        self.statistics.record_match()

    def on_match_fired(self, event: MatchFired) -> None:
        self.statistics.record_fired(event.table, event.rule_id)

    def on_evaluation_ended(self, event: EvaluationEnded) -> None:
        self.statistics.record_evaluation(failed=event.state == SessionState.FAILED)
