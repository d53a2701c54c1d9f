"""Value objects exchanged with the Messenger platform."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

RATE_LIMIT_ERROR_CODE = 613
TRANSPORT_ERROR_CODE = -1


@dataclass(frozen=True)
class ParsedMessage:
    """A customer text message extracted from a webhook delivery."""

    sender_id: str
    recipient_id: str
    timestamp: int
    message_text: str
    message_id: str

    @property
    def sent_at(self) -> datetime:
        """Upstream send time as an aware UTC datetime."""

        try:
            millis = int(self.timestamp)
            if millis <= 0:
                raise ValueError("timestamp not set")
            return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
        except (TypeError, ValueError, OverflowError, OSError):
            return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SendError:
    code: int
    message: str


@dataclass(frozen=True)
class SendResult:
    """Outcome of one send attempt (or of a whole retry sequence)."""

    success: bool
    message_id: Optional[str] = None
    error: Optional[SendError] = None

    @classmethod
    def ok(cls, message_id: Optional[str]) -> "SendResult":
        return cls(success=True, message_id=message_id)

    @classmethod
    def failed(cls, code: int, message: str) -> "SendResult":
        return cls(success=False, error=SendError(code=code, message=message))

    @property
    def is_rate_limited(self) -> bool:
        return self.error is not None and self.error.code == RATE_LIMIT_ERROR_CODE
