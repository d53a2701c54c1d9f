"""Conversation storage and inbound message ingestion."""

from .models import ConversationStatus, HandoverReason, SenderType
from .repository import (
    ConversationRepository,
    InMemoryConversationRepository,
    PostgresConversationRepository,
)
from .service import IngestionService

__all__ = [
    "ConversationRepository",
    "ConversationStatus",
    "HandoverReason",
    "InMemoryConversationRepository",
    "IngestionService",
    "PostgresConversationRepository",
    "SenderType",
]
