"""Verification of the ``X-Hub-Signature-256`` webhook header."""

from __future__ import annotations

import hashlib
import hmac

from ..app_logging import get_logger

SIGNATURE_HEADER = "X-Hub-Signature-256"
_PREFIX = "sha256="

log = get_logger("WEBHOOK")


def compute_signature(raw_body: bytes, app_secret: str) -> str:
    """Return the header value Facebook would send for ``raw_body``."""

    digest = hmac.new(app_secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()
    return f"{_PREFIX}{digest}"


def verify_signature(
    raw_body: bytes, signature_header: str | None, app_secret: str | None
) -> bool:
    """Check ``signature_header`` against an HMAC-SHA256 of the raw body.

    The body must be the exact bytes received; re-serialised JSON will not
    match. Every failure mode returns ``False``.
    """

    if not signature_header:
        log.warning("Missing signature header")
        return False
    if not signature_header.startswith(_PREFIX):
        log.warning("Malformed signature header, missing sha256= prefix")
        return False
    if not app_secret:
        log.error("FACEBOOK_APP_SECRET not configured")
        return False

    expected = compute_signature(raw_body, app_secret)
    valid = hmac.compare_digest(signature_header.encode("utf-8"), expected.encode("utf-8"))
    if not valid:
        log.warning("Invalid signature")
    return valid
