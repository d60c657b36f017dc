"""Built-in evaluation listeners."""

from .logging_listener import LoggingListener
from .statistics import RuleStatistics, RuleStatisticsListener, StatisticsSnapshot
from .audit import AuditEventType, AuditListener, AuditRepository

__all__ = [
    "LoggingListener",
    "RuleStatistics",
    "RuleStatisticsListener",
    "StatisticsSnapshot",
    "AuditEventType",
    "AuditListener",
    "AuditRepository",
]
