"""SQLAlchemy engine factory for tooling and schema tests."""

from __future__ import annotations

from sqlalchemy import Engine, create_engine, event

from ..config import get_settings


def as_sqlalchemy_url(db_url: str) -> str:
    """Ensure a Postgres URL uses the ``psycopg`` (v3) driver."""

    if db_url.startswith("postgresql://"):
        return db_url.replace("postgresql://", "postgresql+psycopg://", 1)
    return db_url


def get_engine(database_url: str | None = None, **kwargs: object) -> Engine:
    """Create an engine for ``database_url`` (default: ``DATABASE_URL``)."""

    url = database_url or get_settings().database_url
    if not url:
        raise RuntimeError("DATABASE_URL is not configured.")

    engine = create_engine(as_sqlalchemy_url(url), **kwargs)

    if engine.dialect.name == "sqlite":

        @event.listens_for(engine, "connect")
        def _configure_sqlite(dbapi_connection, _connection_record):  # pragma: no cover - dialect hook
            dbapi_connection.execute("PRAGMA foreign_keys=ON")

    return engine

