"""Tenant, catalogue and conversation tables.

The models mirror ``replybot/migrations/001_create_messenger_tables.py``. Two
indexes carry behaviour the pipeline depends on:

* ``ux_messages_facebook_message_id`` (partial, non-null ids only) makes the
  idempotent message insert possible.
* ``ux_conversations_tenant_sender`` guarantees one conversation per customer
  and page.
"""

from __future__ import annotations

import datetime as dt
import uuid
from decimal import Decimal
from typing import Any, List

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from . import Base

_JSON = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> dt.datetime:
    """Return the current UTC timestamp with timezone awareness."""

    return dt.datetime.now(dt.timezone.utc)


class Business(Base):
    """A tenant: one business connected to one Facebook page.

    Attributes:
        bot_active: When false inbound messages are stored but never answered.
        opening_hours: ``{"monday": {"open": "08:00", "close": "17:00"}, ...}``.
        facebook_access_token: Encrypted page token (``iv:authTag:ciphertext``).
    """

    __tablename__ = "businesses"
    __table_args__ = (
        Index(
            "ux_businesses_facebook_page_id",
            "facebook_page_id",
            unique=True,
            postgresql_where=text("facebook_page_id IS NOT NULL"),
            sqlite_where=text("facebook_page_id IS NOT NULL"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(length=255), nullable=False)
    bot_active: Mapped[bool] = mapped_column(
        Boolean(), nullable=False, default=True, server_default=text("true")
    )
    opening_hours: Mapped[dict[str, Any] | None] = mapped_column(_JSON, nullable=True)
    address: Mapped[str | None] = mapped_column(Text(), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(length=64), nullable=True)
    facebook_page_id: Mapped[str | None] = mapped_column(String(length=64), nullable=True)
    facebook_access_token: Mapped[str | None] = mapped_column(Text(), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    products: Mapped[List["Product"]] = relationship(
        back_populates="business",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    conversations: Mapped[List["Conversation"]] = relationship(
        back_populates="business",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Product(Base):
    """Catalogue entry quoted by the price intent."""

    __tablename__ = "products"
    __table_args__ = (Index("ix_products_tenant_id", "tenant_id"),)

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(length=255), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(
        String(length=3), nullable=False, default="USD", server_default=text("'USD'")
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean(), nullable=False, default=True, server_default=text("true")
    )
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    business: Mapped[Business] = relationship(back_populates="products")


class Conversation(Base):
    """Thread between one customer and one business."""

    __tablename__ = "conversations"
    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "facebook_sender_id", name="ux_conversations_tenant_sender"
        ),
        Index("ix_conversations_tenant_customer", "tenant_id", "customer_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False,
    )
    customer_id: Mapped[str] = mapped_column(String(length=64), nullable=False)
    facebook_sender_id: Mapped[str | None] = mapped_column(String(length=64), nullable=True)
    status: Mapped[str] = mapped_column(
        String(length=32),
        nullable=False,
        default="active",
        server_default=text("'active'"),
    )
    handover_reason: Mapped[str | None] = mapped_column(String(length=32), nullable=True)
    last_message_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    business: Mapped[Business] = relationship(back_populates="conversations")
    messages: Mapped[List["Message"]] = relationship(
        back_populates="conversation",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Message.created_at",
    )


class Message(Base):
    """A single customer, bot or owner message."""

    __tablename__ = "messages"
    __table_args__ = (
        Index(
            "ux_messages_facebook_message_id",
            "facebook_message_id",
            unique=True,
            postgresql_where=text("facebook_message_id IS NOT NULL"),
            sqlite_where=text("facebook_message_id IS NOT NULL"),
        ),
        Index("ix_messages_conversation_id", "conversation_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False,
    )
    conversation_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
    )
    sender_type: Mapped[str] = mapped_column(String(length=16), nullable=False)
    content: Mapped[str] = mapped_column(Text(), nullable=False)
    facebook_message_id: Mapped[str | None] = mapped_column(String(length=255), nullable=True)
    is_handover_trigger: Mapped[bool] = mapped_column(
        Boolean(), nullable=False, default=False, server_default=text("false")
    )
    handover_reason: Mapped[str | None] = mapped_column(String(length=32), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    conversation: Mapped[Conversation] = relationship(back_populates="messages")
