"""FastAPI dependencies."""

from __future__ import annotations

from typing import Generator, Optional

from fastapi import Header, HTTPException, status
from sqlalchemy.orm import Session

from underwriter.config import get_settings
from underwriter.core.service import DecisionService, get_decision_service
from underwriter.db.database import get_db as db_context


def get_db() -> Generator[Session, None, None]:
    """Yield a database session."""
    with db_context() as db:
        yield db


def get_service() -> DecisionService:
    """The process-wide decision service."""
    return get_decision_service()


def require_api_key(x_api_key: Optional[str] = Header(None)) -> None:
    """Validate the API key for protected endpoints.

    With no key configured every request is allowed (dev mode).
    """
    settings = get_settings()
    if not settings.api_key:
        return
    if x_api_key and x_api_key == settings.api_key:
        return
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or missing API key",
    )
