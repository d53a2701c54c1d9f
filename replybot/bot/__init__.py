"""Rules-based reply bot: intent rules, data gateway, templates and engine."""

from .engine import BotEngine
from .models import BotResponse, Confidence, Intent, MatchResult
from .queries import (
    BusinessDataGateway,
    InMemoryBusinessDataGateway,
    PostgresBusinessDataGateway,
)
from .rules import classify_intent

__all__ = [
    "BotEngine",
    "BotResponse",
    "BusinessDataGateway",
    "Confidence",
    "InMemoryBusinessDataGateway",
    "Intent",
    "MatchResult",
    "PostgresBusinessDataGateway",
    "classify_intent",
]
