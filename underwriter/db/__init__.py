"""Database module."""

from .database import get_db, init_db, engine, SessionLocal
from .models import Base, DecisionAuditEvent

__all__ = [
    "get_db",
    "init_db",
    "engine",
    "SessionLocal",
    "Base",
    "DecisionAuditEvent",
]
