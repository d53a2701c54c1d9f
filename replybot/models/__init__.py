"""SQLAlchemy declarative base and Messenger-facing models.

The service reads and writes these tables through psycopg with raw SQL; the
declarative models document the schema, back the Alembic migration and are
used by the schema tests.
"""

from __future__ import annotations

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy declarative models."""


# Re-export so callers can ``from replybot.models import Conversation``.
from .messenger import Business, Conversation, Message, Product


__all__ = [
    "Base",
    "Business",
    "Conversation",
    "Message",
    "Product",
]
