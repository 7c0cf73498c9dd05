"""
FastAPI dependency injection providers.

Routes receive the database engine, event bus and the full application
context through these providers. Tests override them with
app.dependency_overrides or by handing create_app() a prepared context.
"""

from __future__ import annotations

from typing import Generator, Optional

from fastapi import Header, HTTPException, Request, status
from sqlalchemy.engine import Engine

from guest_messaging import config
from guest_messaging.context import AppContext
from guest_messaging.events import EventBus


def get_context(request: Request) -> AppContext:
    """
    Provide the application context built at startup.

    Raises:
        HTTPException: 503 if the application has not finished starting
    """
    context: Optional[AppContext] = getattr(request.app.state, "context", None)
    if context is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Application not ready",
        )
    return context


def get_db_engine(request: Request) -> Generator[Engine, None, None]:
    """
    Provide the database engine for dependency injection.

    Yields:
        Engine: SQLAlchemy database engine

    Example:
        >>> from fastapi import Depends
        >>>
        >>> @router.get("/threads")
        >>> def list_threads(engine: Engine = Depends(get_db_engine)):
        ...     with engine.connect() as conn:
        ...         ...

    Testing Example:
        >>> mock_engine = Mock(spec=Engine)
        >>> app.dependency_overrides[get_db_engine] = lambda: mock_engine
    """
    yield get_context(request).engine


def get_event_bus(request: Request) -> EventBus:
    return get_context(request).bus


def require_api_key(x_api_key: Optional[str] = Header(default=None)) -> None:
    """
    Guard operator endpoints with the X-API-Key header.

    An empty ADMIN_API_KEY leaves the operator surface open (local use).

    Raises:
        HTTPException: 401 if the key is missing or wrong
    """
    if not config.ADMIN_API_KEY:
        return
    if x_api_key != config.ADMIN_API_KEY:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
        )
