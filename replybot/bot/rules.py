"""Keyword rules that classify customer messages into intents.

Matching is deliberately simple: substring tests of Khmer and English keywords
against a normalised message, checked in a fixed priority order. When nothing
matches, a word-level pass over common commerce synonyms gives a medium
confidence guess; otherwise the message is a ``general_faq`` with low
confidence and goes to a human.
"""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Optional

from .models import Confidence, Intent, MatchResult

# Khmer keywords first, then English.
INTENT_KEYWORDS: Dict[Intent, List[str]] = {
    Intent.PRICE_QUERY: [
        "តម្លៃ",
        "ប៉ុន្មាន",
        "ថ្លៃ",
        "ការដឹកជញ្ជូន",
        "បញ្ចុះតម្លៃ",
        "ថែម",
        "price",
        "cost",
        "how much",
        "menu",
        "delivery fee",
        "discount",
        "promotion",
        "promo",
        "sale",
    ],
    Intent.HOURS_QUERY: [
        "ម៉ោងបើក",
        "ម៉ោងបិទ",
        "ម៉ោង",
        "បើក",
        "បិទ",
        "ពេលណា",
        "hours",
        "open",
        "close",
        "when",
        "schedule",
        "available",
    ],
    Intent.LOCATION_QUERY: [
        "ទីតាំង",
        "នៅឯណា",
        "អាសយដ្ឋាន",
        "ហាង",
        "ជិត",
        "ផ្លូវ",
        "location",
        "address",
        "where",
        "directions",
        "find you",
        "shop",
        "store",
        "map",
    ],
    Intent.PHONE_QUERY: [
        "ទូរស័ព្ទ",
        "លេខ",
        "ទំនាក់ទំនង",
        "ទំនាក់",
        "phone",
        "call",
        "contact",
        "telegram",
        # LINE messenger; broad, may false-positive.
        "line",
        "message",
    ],
    Intent.GREETING: [
        "សួស្តី",
        "ជំរាបសួរ",
        "អរុណសួស្តី",
        "សុខសប្បាយ",
        "ឡូ",
        # "bong" is a general address term; later in priority than every query intent.
        "បង",
        "hi បង",
        "hello បង",
        "hello",
        "good morning",
        "good afternoon",
        "good evening",
        "halo",
    ],
    Intent.FAREWELL: [
        "លាហើយ",
        "ជំរាបលា",
        "អរគុណច្រើន",
        "អរគុណណា",
        "អរគុណហើយ",
        "អរគុណ",
        "ល្អ",
        "ចាស",
        "បាទ",
        "ok thanks",
        "bye",
        "goodbye",
        "thank you",
        "thanks",
        "thank",
    ],
}

# Word-level matches only: "hi" must not fire inside "this", nor "ok" inside "booking".
COMMERCE_SYNONYMS: Dict[str, Intent] = {
    "delivery": Intent.PRICE_QUERY,
    "deliver": Intent.PRICE_QUERY,
    "wifi": Intent.LOCATION_QUERY,
    "parking": Intent.LOCATION_QUERY,
    "hi": Intent.GREETING,
    "hey": Intent.GREETING,
    "sup": Intent.GREETING,
    "yo": Intent.GREETING,
    "howdy": Intent.GREETING,
    "thx": Intent.FAREWELL,
    "ty": Intent.FAREWELL,
    "cheers": Intent.FAREWELL,
    "ok": Intent.FAREWELL,
    "okay": Intent.FAREWELL,
}

INTENT_PRIORITY = (
    Intent.PRICE_QUERY,
    Intent.HOURS_QUERY,
    Intent.LOCATION_QUERY,
    Intent.PHONE_QUERY,
    Intent.GREETING,
    Intent.FAREWELL,
)

ENGLISH_FILLERS = ("is", "the", "of", "for", "a", "an")
KHMER_FILLERS = ("បង", "អី", "នេះ", "នោះ", "មួយ")

_ZERO_WIDTH_RE = re.compile("[\u200b\u200c\u200d\ufeff]")
_LATIN_UPPER_RE = re.compile("[A-Z]")
_WHITESPACE_RE = re.compile(r"\s+")
_SYNONYM_PUNCT_RE = re.compile(r"[?។!.,;:]")
_TERMINAL_PUNCT_RE = re.compile(r"[?។]")
_FILLER_RES = [
    re.compile(rf"\b{re.escape(word)}\b", re.IGNORECASE | re.ASCII) for word in ENGLISH_FILLERS
]


def normalize_message(message: str) -> str:
    """Normalise a message for keyword matching. Idempotent.

    Removes zero-width characters, turns non-breaking spaces into spaces,
    lowercases Latin letters only (Khmer has no case) and collapses whitespace.
    """

    result = _ZERO_WIDTH_RE.sub("", message)
    result = result.replace("\u00a0", " ")
    result = _LATIN_UPPER_RE.sub(lambda m: m.group(0).lower(), result)
    return _WHITESPACE_RE.sub(" ", result).strip()


def extract_product_name(
    message: str, price_keywords: Optional[Iterable[str]] = None
) -> Optional[str]:
    """Isolate the product name in a price question.

    ``"តម្លៃ lok lak ប៉ុន្មាន"`` gives ``"lok lak"`` and ``"how much is coffee"``
    gives ``"coffee"``. Returns ``None`` when nothing is left.
    """

    keywords = INTENT_KEYWORDS[Intent.PRICE_QUERY] if price_keywords is None else price_keywords
    remaining = normalize_message(message)
    for keyword in keywords:
        remaining = remaining.replace(keyword.lower(), "")
    for filler_re in _FILLER_RES:
        remaining = filler_re.sub("", remaining)
    for filler in KHMER_FILLERS:
        remaining = remaining.replace(filler, "")
    remaining = _TERMINAL_PUNCT_RE.sub("", remaining)
    cleaned = _WHITESPACE_RE.sub(" ", remaining).strip()
    return cleaned or None


def classify_intent(message: str) -> MatchResult:
    """Classify ``message`` into an :class:`Intent` with a confidence level."""

    normalized = normalize_message(message)

    for intent in INTENT_PRIORITY:
        keywords = INTENT_KEYWORDS[intent]
        if not any(keyword.lower() in normalized for keyword in keywords):
            continue
        if intent is Intent.PRICE_QUERY:
            entity = extract_product_name(normalized, keywords)
            return MatchResult(
                intent=intent,
                confidence=Confidence.HIGH if entity else Confidence.MEDIUM,
                extracted_entity=entity,
            )
        return MatchResult(intent=intent, confidence=Confidence.HIGH)

    for word in normalized.split(" "):
        synonym = COMMERCE_SYNONYMS.get(_SYNONYM_PUNCT_RE.sub("", word))
        if synonym is not None:
            return MatchResult(intent=synonym, confidence=Confidence.MEDIUM)

    return MatchResult(intent=Intent.GENERAL_FAQ, confidence=Confidence.LOW)
