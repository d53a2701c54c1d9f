"""Persistence for tenants' Messenger conversations and messages."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol
from uuid import UUID, uuid4

import psycopg
from psycopg.rows import dict_row

from . import schemas
from .models import ConversationStatus, HandoverReason, SenderType

_CONVERSATION_COLUMNS = """
    id, tenant_id, customer_id, facebook_sender_id, status, handover_reason,
    last_message_at, created_at, updated_at
"""

_MESSAGE_COLUMNS = """
    id, tenant_id, conversation_id, sender_type, content, facebook_message_id,
    is_handover_trigger, handover_reason, created_at
"""


def _enum_value(value):
    return value.value if value is not None else None


class ConversationRepository(Protocol):
    """Tenant-scoped storage used by the ingestion and response services."""

    def get_business_by_page_id(self, page_id: str) -> Optional[schemas.BusinessChannel]: ...

    def get_business(self, tenant_id: UUID) -> Optional[schemas.BusinessChannel]: ...

    def get_conversation(
        self, tenant_id: UUID, conversation_id: UUID
    ) -> Optional[schemas.ConversationRecord]: ...

    def find_conversation_by_sender(
        self, tenant_id: UUID, facebook_sender_id: str
    ) -> Optional[schemas.ConversationRecord]: ...

    def find_conversation_by_customer(
        self, tenant_id: UUID, customer_id: str
    ) -> Optional[schemas.ConversationRecord]: ...

    def set_facebook_sender_id(
        self, tenant_id: UUID, conversation_id: UUID, facebook_sender_id: str
    ) -> None: ...

    def create_conversation(
        self,
        tenant_id: UUID,
        facebook_sender_id: str,
        *,
        status: ConversationStatus,
        last_message_at: datetime,
    ) -> Optional[schemas.ConversationRecord]: ...

    def insert_message(
        self,
        tenant_id: UUID,
        conversation_id: UUID,
        *,
        sender_type: SenderType,
        content: str,
        facebook_message_id: Optional[str] = None,
        is_handover_trigger: bool = False,
        handover_reason: Optional[HandoverReason] = None,
    ) -> Optional[schemas.MessageRecord]: ...

    def touch_conversation(
        self,
        tenant_id: UUID,
        conversation_id: UUID,
        *,
        last_message_at: datetime,
        status: Optional[ConversationStatus] = None,
    ) -> None: ...

    def update_status(
        self,
        tenant_id: UUID,
        conversation_id: UUID,
        status: ConversationStatus,
        *,
        handover_reason: Optional[HandoverReason] = None,
    ) -> None: ...


class PostgresConversationRepository:
    """PostgreSQL implementation of :class:`ConversationRepository`.

    ``create_conversation`` and ``insert_message`` return ``None`` when a
    unique index rejects the row, which callers treat as "already exists".
    """

    def __init__(self, conn: psycopg.Connection) -> None:
        self._conn = conn

    # Utility -----------------------------------------------------------------
    def _cursor(self):
        return self._conn.cursor(row_factory=dict_row)

    # Businesses --------------------------------------------------------------
    def get_business_by_page_id(self, page_id: str) -> Optional[schemas.BusinessChannel]:
        with self._cursor() as cur:
            cur.execute(
                """
                SELECT id, name, bot_active, facebook_page_id, facebook_access_token
                FROM businesses
                WHERE facebook_page_id = %s
                """,
                (page_id,),
            )
            row = cur.fetchone()
        return schemas.BusinessChannel(**row) if row else None

    def get_business(self, tenant_id: UUID) -> Optional[schemas.BusinessChannel]:
        with self._cursor() as cur:
            cur.execute(
                """
                SELECT id, name, bot_active, facebook_page_id, facebook_access_token
                FROM businesses
                WHERE id = %s
                """,
                (tenant_id,),
            )
            row = cur.fetchone()
        return schemas.BusinessChannel(**row) if row else None

    # Conversations -----------------------------------------------------------
    def get_conversation(
        self, tenant_id: UUID, conversation_id: UUID
    ) -> Optional[schemas.ConversationRecord]:
        with self._cursor() as cur:
            cur.execute(
                f"SELECT {_CONVERSATION_COLUMNS} FROM conversations"
                " WHERE tenant_id = %s AND id = %s",
                (tenant_id, conversation_id),
            )
            row = cur.fetchone()
        return schemas.ConversationRecord(**row) if row else None

    def find_conversation_by_sender(
        self, tenant_id: UUID, facebook_sender_id: str
    ) -> Optional[schemas.ConversationRecord]:
        with self._cursor() as cur:
            cur.execute(
                f"SELECT {_CONVERSATION_COLUMNS} FROM conversations"
                " WHERE tenant_id = %s AND facebook_sender_id = %s",
                (tenant_id, facebook_sender_id),
            )
            row = cur.fetchone()
        return schemas.ConversationRecord(**row) if row else None

    def find_conversation_by_customer(
        self, tenant_id: UUID, customer_id: str
    ) -> Optional[schemas.ConversationRecord]:
        with self._cursor() as cur:
            cur.execute(
                f"SELECT {_CONVERSATION_COLUMNS} FROM conversations"
                " WHERE tenant_id = %s AND customer_id = %s"
                " ORDER BY created_at LIMIT 1",
                (tenant_id, customer_id),
            )
            row = cur.fetchone()
        return schemas.ConversationRecord(**row) if row else None

    def set_facebook_sender_id(
        self, tenant_id: UUID, conversation_id: UUID, facebook_sender_id: str
    ) -> None:
        with self._conn.cursor() as cur:
            cur.execute(
                """
                UPDATE conversations
                SET facebook_sender_id = %s, updated_at = now()
                WHERE tenant_id = %s AND id = %s
                """,
                (facebook_sender_id, tenant_id, conversation_id),
            )

    def create_conversation(
        self,
        tenant_id: UUID,
        facebook_sender_id: str,
        *,
        status: ConversationStatus,
        last_message_at: datetime,
    ) -> Optional[schemas.ConversationRecord]:
        with self._cursor() as cur:
            cur.execute(
                f"""
                INSERT INTO conversations
                    (tenant_id, customer_id, facebook_sender_id, status, last_message_at)
                VALUES (%s, %s, %s, %s, %s)
                ON CONFLICT (tenant_id, facebook_sender_id) DO NOTHING
                RETURNING {_CONVERSATION_COLUMNS}
                """,
                (tenant_id, facebook_sender_id, facebook_sender_id, status.value, last_message_at),
            )
            row = cur.fetchone()
        return schemas.ConversationRecord(**row) if row else None

    def touch_conversation(
        self,
        tenant_id: UUID,
        conversation_id: UUID,
        *,
        last_message_at: datetime,
        status: Optional[ConversationStatus] = None,
    ) -> None:
        with self._conn.cursor() as cur:
            cur.execute(
                """
                UPDATE conversations
                SET last_message_at = %s,
                    status = COALESCE(%s, status),
                    updated_at = now()
                WHERE tenant_id = %s AND id = %s
                """,
                (last_message_at, _enum_value(status), tenant_id, conversation_id),
            )

    def update_status(
        self,
        tenant_id: UUID,
        conversation_id: UUID,
        status: ConversationStatus,
        *,
        handover_reason: Optional[HandoverReason] = None,
    ) -> None:
        with self._conn.cursor() as cur:
            cur.execute(
                """
                UPDATE conversations
                SET status = %s,
                    handover_reason = COALESCE(%s, handover_reason),
                    updated_at = now()
                WHERE tenant_id = %s AND id = %s
                """,
                (status.value, _enum_value(handover_reason), tenant_id, conversation_id),
            )

    # Messages ----------------------------------------------------------------
    def insert_message(
        self,
        tenant_id: UUID,
        conversation_id: UUID,
        *,
        sender_type: SenderType,
        content: str,
        facebook_message_id: Optional[str] = None,
        is_handover_trigger: bool = False,
        handover_reason: Optional[HandoverReason] = None,
    ) -> Optional[schemas.MessageRecord]:
        with self._cursor() as cur:
            cur.execute(
                f"""
                INSERT INTO messages (
                    tenant_id, conversation_id, sender_type, content,
                    facebook_message_id, is_handover_trigger, handover_reason
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s)
                ON CONFLICT (facebook_message_id) WHERE facebook_message_id IS NOT NULL
                DO NOTHING
                RETURNING {_MESSAGE_COLUMNS}
                """,
                (
                    tenant_id,
                    conversation_id,
                    sender_type.value,
                    content,
                    facebook_message_id,
                    is_handover_trigger,
                    _enum_value(handover_reason),
                ),
            )
            row = cur.fetchone()
        return schemas.MessageRecord(**row) if row else None


class InMemoryConversationRepository:
    """Dictionary-backed repository honouring the same unique keys as Postgres."""

    def __init__(self) -> None:
        self.businesses: Dict[UUID, schemas.BusinessChannel] = {}
        self.conversations: Dict[UUID, schemas.ConversationRecord] = {}
        self.messages: List[schemas.MessageRecord] = []

    def add_business(self, business: schemas.BusinessChannel) -> schemas.BusinessChannel:
        self.businesses[business.id] = business
        return business

    def add_conversation(
        self, conversation: schemas.ConversationRecord
    ) -> schemas.ConversationRecord:
        self.conversations[conversation.id] = conversation
        return conversation

    def messages_for(self, conversation_id: UUID) -> List[schemas.MessageRecord]:
        return [m for m in self.messages if m.conversation_id == conversation_id]

    def get_business_by_page_id(self, page_id: str) -> Optional[schemas.BusinessChannel]:
        for business in self.businesses.values():
            if business.facebook_page_id == page_id:
                return business.model_copy()
        return None

    def get_business(self, tenant_id: UUID) -> Optional[schemas.BusinessChannel]:
        business = self.businesses.get(tenant_id)
        return business.model_copy() if business else None

    def get_conversation(
        self, tenant_id: UUID, conversation_id: UUID
    ) -> Optional[schemas.ConversationRecord]:
        convo = self.conversations.get(conversation_id)
        if convo is None or convo.tenant_id != tenant_id:
            return None
        return convo.model_copy()

    def find_conversation_by_sender(
        self, tenant_id: UUID, facebook_sender_id: str
    ) -> Optional[schemas.ConversationRecord]:
        for convo in self.conversations.values():
            if convo.tenant_id == tenant_id and convo.facebook_sender_id == facebook_sender_id:
                return convo.model_copy()
        return None

    def find_conversation_by_customer(
        self, tenant_id: UUID, customer_id: str
    ) -> Optional[schemas.ConversationRecord]:
        for convo in self.conversations.values():
            if convo.tenant_id == tenant_id and convo.customer_id == customer_id:
                return convo.model_copy()
        return None

    def set_facebook_sender_id(
        self, tenant_id: UUID, conversation_id: UUID, facebook_sender_id: str
    ) -> None:
        convo = self.conversations.get(conversation_id)
        if convo is not None and convo.tenant_id == tenant_id:
            convo.facebook_sender_id = facebook_sender_id
            convo.updated_at = datetime.now(timezone.utc)

    def create_conversation(
        self,
        tenant_id: UUID,
        facebook_sender_id: str,
        *,
        status: ConversationStatus,
        last_message_at: datetime,
    ) -> Optional[schemas.ConversationRecord]:
        if self.find_conversation_by_sender(tenant_id, facebook_sender_id) is not None:
            return None
        now = datetime.now(timezone.utc)
        convo = schemas.ConversationRecord(
            id=uuid4(),
            tenant_id=tenant_id,
            customer_id=facebook_sender_id,
            facebook_sender_id=facebook_sender_id,
            status=status,
            last_message_at=last_message_at,
            created_at=now,
            updated_at=now,
        )
        self.conversations[convo.id] = convo
        return convo.model_copy()

    def touch_conversation(
        self,
        tenant_id: UUID,
        conversation_id: UUID,
        *,
        last_message_at: datetime,
        status: Optional[ConversationStatus] = None,
    ) -> None:
        convo = self.conversations.get(conversation_id)
        if convo is None or convo.tenant_id != tenant_id:
            return
        convo.last_message_at = last_message_at
        if status is not None:
            convo.status = status
        convo.updated_at = datetime.now(timezone.utc)

    def update_status(
        self,
        tenant_id: UUID,
        conversation_id: UUID,
        status: ConversationStatus,
        *,
        handover_reason: Optional[HandoverReason] = None,
    ) -> None:
        convo = self.conversations.get(conversation_id)
        if convo is None or convo.tenant_id != tenant_id:
            return
        convo.status = status
        if handover_reason is not None:
            convo.handover_reason = handover_reason
        convo.updated_at = datetime.now(timezone.utc)

    def insert_message(
        self,
        tenant_id: UUID,
        conversation_id: UUID,
        *,
        sender_type: SenderType,
        content: str,
        facebook_message_id: Optional[str] = None,
        is_handover_trigger: bool = False,
        handover_reason: Optional[HandoverReason] = None,
    ) -> Optional[schemas.MessageRecord]:
        if facebook_message_id is not None and any(
            m.facebook_message_id == facebook_message_id for m in self.messages
        ):
            return None
        record = schemas.MessageRecord(
            id=uuid4(),
            tenant_id=tenant_id,
            conversation_id=conversation_id,
            sender_type=sender_type,
            content=content,
            facebook_message_id=facebook_message_id,
            is_handover_trigger=is_handover_trigger,
            handover_reason=handover_reason,
            created_at=datetime.now(timezone.utc),
        )
        self.messages.append(record)
        return record
