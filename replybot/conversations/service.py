"""Ingestion of inbound Messenger messages into tenant conversations."""

from __future__ import annotations

from typing import Callable, Optional
from uuid import UUID

from ..app_logging import StructuredLogger, get_logger
from ..messenger.models import ParsedMessage
from . import schemas
from .models import (
    SenderType,
    initial_status,
    on_inbound_while_active,
    on_inbound_while_paused,
)
from .repository import ConversationRepository

Responder = Callable[[UUID, UUID, str], None]


class IngestionService:
    """Store a parsed message exactly once and trigger the automated reply.

    Database errors on the critical path (conversation creation, message
    insert) propagate to the caller; everything after the message is stored
    is best effort.
    """

    def __init__(
        self,
        repository: ConversationRepository,
        *,
        responder: Optional[Responder] = None,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        self.repository = repository
        self.responder = responder
        self.log = logger or get_logger("WEBHOOK")

    def _resolve_conversation(
        self, business: schemas.BusinessChannel, message: ParsedMessage
    ) -> tuple[schemas.ConversationRecord, bool]:
        tenant_id = business.id
        sender_id = message.sender_id

        convo = self.repository.find_conversation_by_sender(tenant_id, sender_id)
        if convo is not None:
            return convo, False

        legacy = self.repository.find_conversation_by_customer(tenant_id, sender_id)
        if legacy is not None:
            self.repository.set_facebook_sender_id(tenant_id, legacy.id, sender_id)
            legacy.facebook_sender_id = sender_id
            return legacy, False

        try:
            created = self.repository.create_conversation(
                tenant_id,
                sender_id,
                status=initial_status(business.bot_active),
                last_message_at=message.sent_at,
            )
            if created is None:
                # Another delivery created it between our lookup and insert.
                created = self.repository.find_conversation_by_sender(tenant_id, sender_id)
                if created is None:
                    raise RuntimeError("Failed to create conversation")
                return created, False
        except Exception as exc:
            self.log.error(
                "Failed to create conversation",
                tenant_id=tenant_id,
                sender_id=sender_id,
                error=str(exc),
            )
            raise
        self.log.info("Created conversation", conversation_id=created.id, tenant_id=tenant_id)
        return created, True

    def process_incoming_message(self, message: ParsedMessage) -> Optional[schemas.IngestResult]:
        """Ingest one message; ``None`` for unknown pages and duplicates."""

        business = self.repository.get_business_by_page_id(message.recipient_id)
        if business is None:
            self.log.warning("No business found for page", page_id=message.recipient_id)
            return None
        tenant_id = business.id

        convo, created = self._resolve_conversation(business, message)

        try:
            stored = self.repository.insert_message(
                tenant_id,
                convo.id,
                sender_type=SenderType.CUSTOMER,
                content=message.message_text,
                facebook_message_id=message.message_id,
            )
        except Exception as exc:
            self.log.error(
                "Failed to store message",
                conversation_id=convo.id,
                error=str(exc),
            )
            raise
        if stored is None:
            self.log.info("Duplicate message skipped", message_id=message.message_id)
            return None

        if business.bot_active:
            status = on_inbound_while_active(convo.status)
        else:
            status = on_inbound_while_paused(convo.status)
        self.repository.touch_conversation(
            tenant_id,
            convo.id,
            last_message_at=message.sent_at,
            status=None if status == convo.status else status,
        )
        self.log.info(
            "Message stored",
            conversation_id=convo.id,
            message_id=message.message_id,
            bot_active=business.bot_active,
        )

        responded = False
        if business.bot_active and self.responder is not None:
            try:
                self.responder(tenant_id, convo.id, message.message_text)
                responded = True
            except Exception as exc:
                self.log.error(
                    "Response processing failed",
                    conversation_id=convo.id,
                    error=str(exc),
                )

        return schemas.IngestResult(
            tenant_id=tenant_id,
            conversation_id=convo.id,
            message_id=stored.id,
            created_conversation=created,
            responded=responded,
        )
