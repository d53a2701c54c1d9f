"""Normalisation of Messenger webhook deliveries into :class:`ParsedMessage`."""

from __future__ import annotations

from typing import Any, Iterator, List, Mapping

from ..app_logging import get_logger
from .models import ParsedMessage

log = get_logger("WEBHOOK")


def _iter_messaging(payload: Mapping[str, Any]) -> Iterator[Mapping[str, Any]]:
    for entry in payload.get("entry") or []:
        if not isinstance(entry, Mapping):
            continue
        messaging = entry.get("messaging")
        if not isinstance(messaging, list):
            continue
        for event in messaging:
            if isinstance(event, Mapping):
                yield event


def _id_of(value: Any) -> str | None:
    if isinstance(value, Mapping):
        raw = value.get("id")
        if raw is not None and str(raw):
            return str(raw)
    return None


def _parse_event(event: Mapping[str, Any]) -> ParsedMessage | None:
    message = event.get("message")
    # Delivery receipts, reads and postbacks carry no message object.
    if not isinstance(message, Mapping):
        return None
    if message.get("is_echo"):
        return None
    text = message.get("text")
    if not isinstance(text, str) or not text:
        return None

    sender_id = _id_of(event.get("sender"))
    recipient_id = _id_of(event.get("recipient"))
    mid = message.get("mid")
    if not sender_id or not recipient_id or not mid:
        log.warning(
            "Missing required message fields",
            has_sender=bool(sender_id),
            has_recipient=bool(recipient_id),
            has_mid=bool(mid),
        )
        return None

    timestamp = event.get("timestamp")
    if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
        timestamp = 0
    return ParsedMessage(
        sender_id=sender_id,
        recipient_id=recipient_id,
        timestamp=int(timestamp),
        message_text=text,
        message_id=str(mid),
    )


def parse_webhook_payload(payload: Any) -> List[ParsedMessage]:
    """Extract customer text messages from a webhook body, in delivery order.

    Unknown shapes produce an empty list; malformed elements are skipped one
    by one so a single bad event never hides the rest of the delivery.
    """

    if not isinstance(payload, Mapping) or not isinstance(payload.get("entry"), list):
        log.warning("Invalid payload structure")
        return []
    if payload.get("object") != "page":
        log.warning("Non-page webhook received", object=payload.get("object"))
        return []

    messages: List[ParsedMessage] = []
    for event in _iter_messaging(payload):
        parsed = _parse_event(event)
        if parsed is not None:
            messages.append(parsed)

    if messages:
        log.info("Parsed messages", count=len(messages))
    return messages
