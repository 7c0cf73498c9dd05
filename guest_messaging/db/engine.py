"""
SQLAlchemy engine construction and health checks.

Engines are created by the process entry point (see context.build_context)
and passed down explicitly; nothing here holds a module-level engine.
"""

from typing import Any

import structlog
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

logger = structlog.get_logger(__name__)


def create_db_engine(database_url: str, **overrides: Any) -> Engine:
    """
    Create an engine with production pooling for server databases.

    SQLite URLs (used by tests and local tooling) skip the pool sizing
    arguments, which their pool classes do not accept.

    Args:
        database_url: SQLAlchemy database URL
        **overrides: Extra keyword arguments for create_engine

    Returns:
        Engine: Configured SQLAlchemy engine
    """
    if database_url.startswith("sqlite"):
        return create_engine(database_url, **overrides)

    options: dict[str, Any] = {
        "pool_size": 10,  # Connections kept open
        "max_overflow": 20,  # Extra connections under burst load
        "pool_pre_ping": True,  # Detect stale connections before use
        "pool_recycle": 3600,
        "echo": False,
    }
    options.update(overrides)
    return create_engine(database_url, **options)


def check_engine_health(engine: Engine) -> bool:
    """
    Check if the database is reachable.

    Used by the /ready endpoint before allowing traffic to the service.

    Returns:
        bool: True if a trivial query succeeds, False otherwise
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.warning("database_health_check_failed", error=str(e))
        return False
