"""Generate, send and record the automated reply to a customer message."""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Callable, Optional
from uuid import UUID

from ..app_logging import StructuredLogger, get_logger
from ..bot import templates
from ..bot.models import BotResponse, Confidence, Intent
from ..conversations import schemas
from ..conversations.models import (
    ConversationStatus,
    HandoverReason,
    SenderType,
    on_low_confidence_reply,
    on_send_failure_exhausted,
    on_send_precondition_failure,
)
from ..conversations.repository import ConversationRepository
from ..security.encryption import TokenDecryptionError, get_token_cipher
from .retry import send_with_retry
from .send import MessengerClient

ReplyGenerator = Callable[[UUID, str], BotResponse]
Decrypt = Callable[[str], str]


def acknowledge_responder(tenant_id: UUID, message: str) -> BotResponse:
    """Fixed acknowledgment used when ``BOT_RESPONSE_MODE=acknowledge``."""

    return BotResponse(
        response_text=templates.get_default_response(),
        confidence=Confidence.MEDIUM,
        intent=Intent.GENERAL_FAQ,
    )


def _default_decrypt(token: str) -> str:
    return get_token_cipher().decrypt(token)


class ResponseService:
    """Reply to one stored customer message.

    :meth:`process_and_respond` never raises: every failure is logged and, where
    the customer would otherwise be left without an answer, the conversation
    is moved to ``needs_attention``.
    """

    def __init__(
        self,
        repository: ConversationRepository,
        responder: ReplyGenerator,
        *,
        client: Optional[MessengerClient] = None,
        decrypt: Optional[Decrypt] = None,
        max_retries: int = 3,
        sleep: Callable[[float], None] = time.sleep,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        self.repository = repository
        self.responder = responder
        self.client = client or MessengerClient()
        self.decrypt = decrypt or _default_decrypt
        self.max_retries = max_retries
        self.sleep = sleep
        self.log = logger or get_logger("RESPOND")

    def _escalate(
        self,
        tenant_id: UUID,
        conversation_id: UUID,
        status: ConversationStatus,
        reason: Optional[HandoverReason] = None,
    ) -> None:
        self.repository.update_status(tenant_id, conversation_id, status, handover_reason=reason)

    def _store_reply(
        self,
        tenant_id: UUID,
        convo: schemas.ConversationRecord,
        reply: BotResponse,
        platform_message_id: Optional[str],
    ) -> None:
        handover = reply.needs_handover
        try:
            stored = self.repository.insert_message(
                tenant_id,
                convo.id,
                sender_type=SenderType.BOT,
                content=reply.response_text,
                facebook_message_id=platform_message_id or None,
                is_handover_trigger=handover,
                handover_reason=HandoverReason.LOW_CONFIDENCE if handover else None,
            )
        except Exception as exc:
            self.log.error("Failed to store bot message", conversation_id=convo.id, error=str(exc))
        else:
            if stored is None:
                self.log.warning(
                    "Bot message already stored",
                    conversation_id=convo.id,
                    message_id=platform_message_id,
                )
            else:
                self.log.info("Bot message stored", conversation_id=convo.id)

        # The customer already has the reply; failures below are logged only.
        try:
            self.repository.touch_conversation(
                tenant_id, convo.id, last_message_at=datetime.now(timezone.utc)
            )
        except Exception as exc:
            self.log.error(
                "Failed to update conversation after send",
                conversation_id=convo.id,
                error=str(exc),
            )
        if handover:
            self.log.info(
                "Low confidence reply, handing over",
                conversation_id=convo.id,
                intent=reply.intent.value,
            )
            try:
                self._escalate(
                    tenant_id,
                    convo.id,
                    on_low_confidence_reply(convo.status),
                    HandoverReason.LOW_CONFIDENCE,
                )
            except Exception as exc:
                self.log.error("Handover update failed", conversation_id=convo.id, error=str(exc))

    def process_and_respond(
        self, tenant_id: UUID, conversation_id: UUID, customer_message: str
    ) -> None:
        convo: Optional[schemas.ConversationRecord] = None
        try:
            business = self.repository.get_business(tenant_id)
            if (
                business is None
                or not business.facebook_access_token
                or not business.facebook_page_id
            ):
                self.log.error("No access token or page ID for tenant", tenant_id=tenant_id)
                return

            convo = self.repository.get_conversation(tenant_id, conversation_id)
            if convo is None or not convo.facebook_sender_id:
                self.log.error("Conversation not found", conversation_id=conversation_id)
                return

            try:
                page_access_token = self.decrypt(business.facebook_access_token)
            except TokenDecryptionError as exc:
                self.log.error("Token decryption failed", tenant_id=tenant_id, error=str(exc))
                self._escalate(
                    tenant_id,
                    conversation_id,
                    on_send_precondition_failure(convo.status),
                )
                return

            reply = self.responder(tenant_id, customer_message)
            page_id = business.facebook_page_id
            recipient_id = convo.facebook_sender_id
            result = send_with_retry(
                lambda: self.client.send_message(
                    page_access_token, page_id, recipient_id, reply.response_text
                ),
                self.max_retries,
                sleep=self.sleep,
            )

            if result.success:
                self._store_reply(tenant_id, convo, reply, result.message_id)
            else:
                self.log.error(
                    "Send failed, escalating",
                    conversation_id=conversation_id,
                    code=result.error.code if result.error else None,
                    error=result.error.message if result.error else None,
                )
                self._escalate(tenant_id, conversation_id, on_send_failure_exhausted(convo.status))
        except Exception as exc:
            self.log.error(
                "Unexpected error",
                tenant_id=tenant_id,
                conversation_id=conversation_id,
                error=str(exc),
            )
            try:
                current = convo.status if convo is not None else ConversationStatus.ACTIVE
                self._escalate(tenant_id, conversation_id, on_send_failure_exhausted(current))
            except Exception as escalation_exc:
                self.log.error(
                    "Escalation failed",
                    conversation_id=conversation_id,
                    error=str(escalation_exc),
                )
