"""Client for the Messenger Send API."""

from __future__ import annotations

from typing import Any

import requests

from ..app_logging import StructuredLogger, get_logger
from ..config import get_settings
from .models import TRANSPORT_ERROR_CODE, SendResult


class MessengerClient:
    """Send text replies through ``POST {api_base}/{page_id}/messages``."""

    def __init__(
        self,
        session: requests.Session | None = None,
        *,
        api_base: str | None = None,
        timeout: float | None = None,
        logger: StructuredLogger | None = None,
    ) -> None:
        settings = get_settings()
        self.session = session or requests.Session()
        self.api_base = (api_base or settings.graph_api_base).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.send_timeout_seconds
        self.log = logger or get_logger("MESSENGER")

    def _url(self, page_id: str) -> str:
        return f"{self.api_base}/{page_id}/messages"

    def send_message(
        self,
        page_access_token: str,
        page_id: str,
        recipient_id: str,
        text: str,
    ) -> SendResult:
        """Send one message. Never raises; failures come back as results."""

        payload = {
            "recipient": {"id": recipient_id},
            "message": {"text": text},
            "messaging_type": "RESPONSE",
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {page_access_token}",
        }
        try:
            response = self.session.post(
                self._url(page_id),
                json=payload,
                headers=headers,
                timeout=self.timeout,
            )
            data: Any = response.json()
        except (requests.RequestException, ValueError) as exc:
            self.log.error("Send exception", recipient_id=recipient_id, error=str(exc))
            return SendResult.failed(TRANSPORT_ERROR_CODE, str(exc) or "Network error")

        if not isinstance(data, dict):
            data = {}

        if not 200 <= response.status_code < 300:
            error = data.get("error") if isinstance(data.get("error"), dict) else {}
            code = error.get("code")
            message = error.get("message")
            self.log.error("Send failed", code=code, message=message)
            return SendResult.failed(
                code if isinstance(code, int) else 0,
                message or "Unknown error",
            )

        message_id = data.get("message_id") or ""
        self.log.info("Sent", recipient_id=recipient_id, message_id=message_id)
        return SendResult.ok(message_id)
