"""Database helpers for service-level psycopg connections.

The webhook pipeline runs without an end-user session, so connections opened
here use the service credentials from ``DATABASE_URL`` and every query carries
an explicit ``tenant_id`` filter instead of relying on session state.
"""

from __future__ import annotations

import logging

import psycopg

from ..config import get_settings

logger = logging.getLogger(__name__)


def get_database_url() -> str:
    """Return the configured database URL or raise ``RuntimeError``."""

    url = get_settings().database_url
    if not url:
        raise RuntimeError("DATABASE_URL not configured")
    return url


def connect(*, autocommit: bool = True) -> psycopg.Connection:
    """Open a psycopg connection using the service credentials.

    Autocommit is on by default: each write in the pipeline is a single
    statement and must be visible immediately to concurrent deliveries.
    """

    try:
        return psycopg.connect(get_database_url(), autocommit=autocommit)
    except psycopg.Error:
        logger.exception("Failed to connect to the database")
        raise
