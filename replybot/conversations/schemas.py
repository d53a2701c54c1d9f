"""Pydantic row models for the webhook pipeline."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from .models import ConversationStatus, HandoverReason, SenderType


class BusinessChannel(BaseModel):
    """Tenant fields needed to receive and answer Messenger traffic."""

    id: UUID
    name: str | None = None
    bot_active: bool = True
    facebook_page_id: str | None = None
    facebook_access_token: str | None = None


class BusinessRecord(BusinessChannel):
    """Full tenant profile as read by the bot's data gateway."""

    opening_hours: dict[str, Any] | None = Field(default=None)
    address: str | None = None
    phone: str | None = None


class ConversationRecord(BaseModel):
    id: UUID
    tenant_id: UUID
    customer_id: str
    facebook_sender_id: str | None = None
    status: ConversationStatus
    handover_reason: HandoverReason | None = None
    last_message_at: datetime
    created_at: datetime | None = None
    updated_at: datetime | None = None


class MessageRecord(BaseModel):
    id: UUID
    tenant_id: UUID
    conversation_id: UUID
    sender_type: SenderType
    content: str
    facebook_message_id: str | None = None
    is_handover_trigger: bool = False
    handover_reason: HandoverReason | None = None
    created_at: datetime | None = None


class IngestResult(BaseModel):
    """Outcome of ingesting one new inbound message."""

    tenant_id: UUID
    conversation_id: UUID
    message_id: UUID
    created_conversation: bool = False
    responded: bool = False
