"""Database initialization helpers."""

from __future__ import annotations

from sqlalchemy import text
from sqlalchemy.engine import Engine

from .db_models import Base


def init_db(engine: Engine) -> None:
    """Create tables and recover meetings left in ``processing`` by a crash."""
    Base.metadata.create_all(engine)
    _reset_interrupted_jobs(engine)


def _reset_interrupted_jobs(engine: Engine) -> None:
    with engine.begin() as conn:
        conn.execute(
            text(
                "UPDATE meetings SET status = 'error', "
                "error_message = 'Analysis was interrupted by a server restart' "
                "WHERE status = 'processing'"
            )
        )
