"""Conversation status state machine and related enumerations.

Callers never write status strings directly; they pick one of the transition
functions below, which keeps every reachable status change in one place.
"""

from __future__ import annotations

from enum import Enum


class ConversationStatus(str, Enum):
    ACTIVE = "active"
    BOT_HANDLED = "bot_handled"
    NEEDS_ATTENTION = "needs_attention"
    OWNER_HANDLED = "owner_handled"


class SenderType(str, Enum):
    CUSTOMER = "customer"
    BOT = "bot"
    OWNER = "owner"


class HandoverReason(str, Enum):
    LOW_CONFIDENCE = "low_confidence"
    CUSTOMER_FRUSTRATED = "customer_frustrated"
    HUMAN_REQUESTED = "human_requested"
    COMPLEX_QUESTION = "complex_question"


def initial_status(bot_active: bool) -> ConversationStatus:
    """Status of a conversation created by its first inbound message."""

    return ConversationStatus.ACTIVE if bot_active else ConversationStatus.NEEDS_ATTENTION


def on_inbound_while_active(current: ConversationStatus) -> ConversationStatus:
    return current


def on_inbound_while_paused(current: ConversationStatus) -> ConversationStatus:
    return ConversationStatus.NEEDS_ATTENTION


def on_send_failure_exhausted(current: ConversationStatus) -> ConversationStatus:
    return ConversationStatus.NEEDS_ATTENTION


def on_send_precondition_failure(current: ConversationStatus) -> ConversationStatus:
    """A reply could not even be attempted (e.g. undecryptable credential)."""

    return ConversationStatus.NEEDS_ATTENTION


def on_low_confidence_reply(current: ConversationStatus) -> ConversationStatus:
    """The bot answered with its handover template; an owner should follow up."""

    return ConversationStatus.NEEDS_ATTENTION
