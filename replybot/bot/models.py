"""Types shared by the intent classifier, data gateway and bot engine."""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum, IntEnum
from typing import Any, Dict, Mapping, Optional
from uuid import UUID

from pydantic import BaseModel


class Intent(str, Enum):
    PRICE_QUERY = "price_query"
    HOURS_QUERY = "hours_query"
    LOCATION_QUERY = "location_query"
    PHONE_QUERY = "phone_query"
    GREETING = "greeting"
    FAREWELL = "farewell"
    GENERAL_FAQ = "general_faq"


class Confidence(IntEnum):
    """Ordinal confidence of a classification or reply (``LOW < MEDIUM < HIGH``)."""

    LOW = 1
    MEDIUM = 2
    HIGH = 3

    @property
    def label(self) -> str:
        return self.name.lower()

    def __str__(self) -> str:
        return self.label


# Replies below this confidence are handed over to a human.
CONFIDENCE_THRESHOLD = Confidence.MEDIUM


@dataclass(frozen=True)
class MatchResult:
    intent: Intent
    confidence: Confidence
    extracted_entity: Optional[str] = None


@dataclass(frozen=True)
class BotResponse:
    response_text: str
    confidence: Confidence
    intent: Intent
    matched_product: Optional[str] = None

    @property
    def needs_handover(self) -> bool:
        return self.confidence < CONFIDENCE_THRESHOLD


class Product(BaseModel):
    id: UUID
    name: str
    price: Decimal
    currency: str = "USD"
    is_active: bool = True


WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")


def _normalize_time(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    match = _TIME_RE.match(value.strip())
    if not match:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 24 or minute > 59:
        return None
    return f"{hour:02d}:{minute:02d}"


@dataclass(frozen=True)
class DaySchedule:
    """Opening window of one weekday as zero-padded ``HH:MM`` strings.

    ``close < open`` describes a window that runs past midnight.
    """

    open: str
    close: str

    @property
    def crosses_midnight(self) -> bool:
        return self.close < self.open


OpeningHours = Dict[str, DaySchedule]


def parse_opening_hours(raw: Any) -> OpeningHours:
    """Parse the stored ``opening_hours`` JSON, dropping malformed days."""

    if not isinstance(raw, Mapping):
        return {}
    hours: OpeningHours = {}
    for day, window in raw.items():
        key = str(day).lower()
        if key not in WEEKDAYS or not isinstance(window, Mapping):
            continue
        open_at = _normalize_time(window.get("open"))
        close_at = _normalize_time(window.get("close"))
        if open_at is None or close_at is None:
            continue
        hours[key] = DaySchedule(open=open_at, close=close_at)
    return hours


@dataclass(frozen=True)
class ClosedInfo:
    is_closed: bool
    next_open_time: Optional[str] = None
    next_open_day: Optional[str] = None
