import pathlib
import sys
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List
from zoneinfo import ZoneInfo

import pytest

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))
from replybot.bot.models import Product
from replybot.bot.queries import InMemoryBusinessDataGateway
from replybot.config import reset_settings_cache
from replybot.conversations.repository import InMemoryConversationRepository
from replybot.conversations.schemas import BusinessChannel, BusinessRecord
from replybot.messenger.models import SendResult

PHNOM_PENH = ZoneInfo("Asia/Phnom_Penh")
PAGE_ID = "page-123"
TEST_KEY_HEX = "00112233445566778899aabbccddeeff00112233445566778899aabbccddeeff"


@pytest.fixture(autouse=True)
def _fresh_settings():
    reset_settings_cache()
    yield
    reset_settings_cache()


@dataclass
class Tenant:
    """A business registered in both the conversation store and the data gateway."""

    id: uuid.UUID
    page_id: str
    repository: InMemoryConversationRepository
    gateway: InMemoryBusinessDataGateway

    def add_product(self, name: str, price: str, currency: str = "USD", *, active: bool = True) -> Product:
        return self.gateway.add_product(
            self.id,
            Product(
                id=uuid.uuid4(),
                name=name,
                price=Decimal(price),
                currency=currency,
                is_active=active,
            ),
        )

    def set_bot_active(self, active: bool) -> None:
        self.repository.businesses[self.id].bot_active = active


@pytest.fixture
def repository() -> InMemoryConversationRepository:
    return InMemoryConversationRepository()


@pytest.fixture
def gateway() -> InMemoryBusinessDataGateway:
    return InMemoryBusinessDataGateway()


@pytest.fixture
def make_tenant(repository, gateway):
    def _make(
        *,
        page_id: str = PAGE_ID,
        name: str | None = "Coffee Corner",
        bot_active: bool = True,
        access_token: str | None = "enc-token",
        opening_hours: Dict[str, Any] | None = None,
        address: str | None = None,
        phone: str | None = None,
    ) -> Tenant:
        tenant_id = uuid.uuid4()
        repository.add_business(
            BusinessChannel(
                id=tenant_id,
                name=name,
                bot_active=bot_active,
                facebook_page_id=page_id,
                facebook_access_token=access_token,
            )
        )
        gateway.add_business(
            BusinessRecord(
                id=tenant_id,
                name=name,
                bot_active=bot_active,
                facebook_page_id=page_id,
                opening_hours=opening_hours,
                address=address,
                phone=phone,
            )
        )
        return Tenant(id=tenant_id, page_id=page_id, repository=repository, gateway=gateway)

    return _make


@dataclass
class FakeMessengerClient:
    """Stand-in for ``MessengerClient`` that records sends and replays results."""

    results: List[SendResult] = field(default_factory=list)
    sent: List[Dict[str, str]] = field(default_factory=list)

    def send_message(self, page_access_token: str, page_id: str, recipient_id: str, text: str) -> SendResult:
        self.sent.append(
            {
                "token": page_access_token,
                "page_id": page_id,
                "recipient_id": recipient_id,
                "text": text,
            }
        )
        if self.results:
            return self.results.pop(0)
        return SendResult.ok(f"m_bot_{len(self.sent)}")


@pytest.fixture
def messenger_client() -> FakeMessengerClient:
    return FakeMessengerClient()


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def fake_sleep(sleeps):
    return sleeps.append


def at(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    """A wall-clock time in the default business timezone."""

    return datetime(year, month, day, hour, minute, tzinfo=PHNOM_PENH)


def messenger_event(
    *,
    mid: str = "m_1",
    text: str | None = "hello",
    sender: str | None = "user-1",
    recipient: str | None = PAGE_ID,
    timestamp: int = 1_700_000_000_000,
    **message_extra: Any,
) -> Dict[str, Any]:
    message: Dict[str, Any] = {"mid": mid, **message_extra}
    if text is not None:
        message["text"] = text
    event: Dict[str, Any] = {"timestamp": timestamp, "message": message}
    if sender is not None:
        event["sender"] = {"id": sender}
    if recipient is not None:
        event["recipient"] = {"id": recipient}
    return event


def page_payload(*events: Dict[str, Any], object_type: str = "page") -> Dict[str, Any]:
    return {
        "object": object_type,
        "entry": [{"id": PAGE_ID, "time": 1_700_000_000_000, "messaging": list(events)}],
    }
