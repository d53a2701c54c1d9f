"""Facebook Messenger webhook: verification handshake and event delivery."""

from __future__ import annotations

import hmac
import json
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Request, status
from fastapi.responses import PlainTextResponse

from ..app_logging import get_logger
from ..bot.engine import BotEngine
from ..bot.queries import PostgresBusinessDataGateway
from ..config import get_settings
from ..conversations.repository import PostgresConversationRepository
from ..conversations.service import IngestionService
from ..core.db import connect
from ..messenger.payload import parse_webhook_payload
from ..messenger.respond import ResponseService, acknowledge_responder
from ..messenger.send import MessengerClient
from ..messenger.signature import SIGNATURE_HEADER, verify_signature

router = APIRouter(tags=["webhooks"])

log = get_logger("WEBHOOK")


@contextmanager
def _service_context() -> Iterator[IngestionService]:
    """Wire the ingestion pipeline to one autocommit connection."""

    settings = get_settings()
    conn = connect(autocommit=True)
    try:
        repository = PostgresConversationRepository(conn)
        if settings.response_mode == "acknowledge":
            responder = acknowledge_responder
        else:
            responder = BotEngine(PostgresBusinessDataGateway(conn)).process_message
        responses = ResponseService(
            repository,
            responder,
            client=MessengerClient(),
            max_retries=settings.send_max_retries,
        )
        yield IngestionService(repository, responder=responses.process_and_respond)
    finally:
        conn.close()


def process_messages(payload: Any) -> None:
    """Ingest every message of one delivery, in order.

    Runs as a background task after the 200 has been sent, so nothing here
    may raise: per-message failures are logged and the loop moves on.
    """

    messages = parse_webhook_payload(payload)
    if not messages:
        return
    log.info("Processing messages", count=len(messages))

    try:
        with _service_context() as ingestion:
            for message in messages:
                try:
                    ingestion.process_incoming_message(message)
                except Exception as exc:
                    log.error(
                        "Message processing failed",
                        error=str(exc),
                        message_id=message.message_id,
                        sender_id=message.sender_id,
                    )
    except Exception as exc:
        log.error("Async processing failed", error=str(exc))


@router.get("/api/webhooks/messenger")
def verify_webhook(request: Request) -> PlainTextResponse:
    params = request.query_params
    mode = params.get("hub.mode")
    token = params.get("hub.verify_token")
    challenge = params.get("hub.challenge")
    log.info("Verification request received", mode=mode)

    expected = get_settings().verify_token
    if not expected:
        log.error("FACEBOOK_VERIFY_TOKEN not configured")
        return PlainTextResponse("Server configuration error", status_code=500)

    if not mode or not token or not challenge:
        log.warning("Missing verification parameters")
        return PlainTextResponse("Missing parameters", status_code=status.HTTP_400_BAD_REQUEST)

    if mode == "subscribe" and hmac.compare_digest(token.encode(), expected.encode()):
        log.info("Verification successful")
        return PlainTextResponse(challenge, status_code=status.HTTP_200_OK)

    log.warning("Verification failed, token mismatch")
    return PlainTextResponse("Forbidden", status_code=status.HTTP_403_FORBIDDEN)


@router.post("/api/webhooks/messenger")
async def receive_webhook(request: Request, background_tasks: BackgroundTasks) -> PlainTextResponse:
    body_bytes = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER)
    if not verify_signature(body_bytes, signature, get_settings().app_secret):
        log.error("Signature verification failed")
        return PlainTextResponse("Forbidden", status_code=status.HTTP_403_FORBIDDEN)

    try:
        payload = json.loads(body_bytes.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        log.error("Invalid JSON in request body")
        return PlainTextResponse("Bad Request", status_code=status.HTTP_400_BAD_REQUEST)

    background_tasks.add_task(process_messages, payload)
    return PlainTextResponse("EVENT_RECEIVED", status_code=status.HTTP_200_OK)
