"""Facebook Messenger integration: inbound webhook parsing and outbound sends."""

from .models import ParsedMessage, SendResult
from .payload import parse_webhook_payload
from .signature import SIGNATURE_HEADER, verify_signature

__all__ = [
    "ParsedMessage",
    "SIGNATURE_HEADER",
    "SendResult",
    "parse_webhook_payload",
    "verify_signature",
]
