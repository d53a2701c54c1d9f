import uuid
from datetime import datetime, timezone

import pytest

from replybot.conversations.models import ConversationStatus, SenderType
from replybot.conversations.schemas import ConversationRecord
from replybot.conversations.service import IngestionService
from replybot.messenger.models import ParsedMessage

from conftest import PAGE_ID


def _message(mid="m_1", text="hello", sender="user-1", recipient=PAGE_ID, timestamp=1_700_000_000_000):
    return ParsedMessage(
        sender_id=sender,
        recipient_id=recipient,
        timestamp=timestamp,
        message_text=text,
        message_id=mid,
    )


class _RecordingResponder:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def __call__(self, tenant_id, conversation_id, text):
        self.calls.append((tenant_id, conversation_id, text))
        if self.error is not None:
            raise self.error


@pytest.fixture
def responder():
    return _RecordingResponder()


@pytest.fixture
def service(repository, responder):
    return IngestionService(repository, responder=responder)


def test_first_message_creates_active_conversation(make_tenant, repository, service, responder):
    tenant = make_tenant()

    result = service.process_incoming_message(_message())

    assert result.created_conversation
    assert result.responded
    convo = repository.conversations[result.conversation_id]
    assert convo.status is ConversationStatus.ACTIVE
    assert convo.facebook_sender_id == "user-1"
    assert convo.last_message_at == datetime.fromtimestamp(1_700_000_000, tz=timezone.utc)
    stored = repository.messages_for(convo.id)
    assert [(m.sender_type, m.content, m.facebook_message_id) for m in stored] == [
        (SenderType.CUSTOMER, "hello", "m_1")
    ]
    assert responder.calls == [(tenant.id, convo.id, "hello")]


def test_follow_up_message_reuses_conversation(make_tenant, repository, service):
    make_tenant()

    first = service.process_incoming_message(_message(mid="m_1"))
    second = service.process_incoming_message(_message(mid="m_2", text="price?"))

    assert second.conversation_id == first.conversation_id
    assert not second.created_conversation
    assert len(repository.conversations) == 1
    assert len(repository.messages_for(first.conversation_id)) == 2


def test_redelivered_message_is_stored_once(make_tenant, repository, service, responder):
    make_tenant()

    assert service.process_incoming_message(_message()) is not None
    assert service.process_incoming_message(_message()) is None

    assert len(repository.messages) == 1
    assert len(responder.calls) == 1


def test_unknown_page_is_ignored(make_tenant, repository, service):
    make_tenant()

    assert service.process_incoming_message(_message(recipient="other-page")) is None
    assert repository.conversations == {}


def test_paused_bot_flags_conversation_without_replying(make_tenant, repository, service, responder):
    tenant = make_tenant(bot_active=False)

    result = service.process_incoming_message(_message())

    assert repository.conversations[result.conversation_id].status is ConversationStatus.NEEDS_ATTENTION
    assert responder.calls == []
    assert not result.responded

    tenant.set_bot_active(True)
    service.process_incoming_message(_message(mid="m_2"))
    assert repository.conversations[result.conversation_id].status is ConversationStatus.NEEDS_ATTENTION


def test_paused_bot_moves_existing_conversation_to_needs_attention(make_tenant, repository, service):
    tenant = make_tenant()
    result = service.process_incoming_message(_message())
    tenant.set_bot_active(False)

    service.process_incoming_message(_message(mid="m_2"))

    assert repository.conversations[result.conversation_id].status is ConversationStatus.NEEDS_ATTENTION


def test_owner_handled_conversation_keeps_status(make_tenant, repository, service):
    make_tenant()
    result = service.process_incoming_message(_message())
    repository.conversations[result.conversation_id].status = ConversationStatus.OWNER_HANDLED

    service.process_incoming_message(_message(mid="m_2"))

    assert repository.conversations[result.conversation_id].status is ConversationStatus.OWNER_HANDLED


def test_legacy_conversation_is_backfilled(make_tenant, repository, service):
    tenant = make_tenant()
    legacy = repository.add_conversation(
        ConversationRecord(
            id=uuid.uuid4(),
            tenant_id=tenant.id,
            customer_id="user-1",
            facebook_sender_id=None,
            status=ConversationStatus.BOT_HANDLED,
            last_message_at=datetime(2023, 1, 1, tzinfo=timezone.utc),
        )
    )

    result = service.process_incoming_message(_message())

    assert result.conversation_id == legacy.id
    assert not result.created_conversation
    assert repository.conversations[legacy.id].facebook_sender_id == "user-1"


def test_conversation_created_concurrently_is_reused(make_tenant, repository, service, monkeypatch):
    tenant = make_tenant()
    existing = repository.add_conversation(
        ConversationRecord(
            id=uuid.uuid4(),
            tenant_id=tenant.id,
            customer_id="customer-9",
            facebook_sender_id="user-1",
            status=ConversationStatus.ACTIVE,
            last_message_at=datetime(2023, 1, 1, tzinfo=timezone.utc),
        )
    )
    original = repository.find_conversation_by_sender
    calls = {"n": 0}

    def first_miss(tenant_id, sender_id):
        # The first lookup misses; the row appears before the insert.
        calls["n"] += 1
        if calls["n"] == 1:
            return None
        return original(tenant_id, sender_id)

    monkeypatch.setattr(repository, "find_conversation_by_sender", first_miss)

    result = service.process_incoming_message(_message())

    assert result.conversation_id == existing.id
    assert not result.created_conversation
    assert len(repository.conversations) == 1


def test_insert_failure_propagates(make_tenant, repository, service, monkeypatch, caplog):
    make_tenant()

    def broken_insert(*args, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(repository, "insert_message", broken_insert)

    with pytest.raises(RuntimeError, match="disk full"):
        service.process_incoming_message(_message())
    assert "Failed to store message" in caplog.text


def test_conversation_creation_failure_propagates(make_tenant, repository, service, monkeypatch, caplog):
    make_tenant()

    def broken_create(*args, **kwargs):
        raise RuntimeError("db down")

    monkeypatch.setattr(repository, "create_conversation", broken_create)

    with pytest.raises(RuntimeError, match="db down"):
        service.process_incoming_message(_message())
    assert "Failed to create conversation" in caplog.text
    assert repository.messages == []


def test_responder_failure_does_not_lose_message(make_tenant, repository):
    make_tenant()
    responder = _RecordingResponder(error=RuntimeError("boom"))
    service = IngestionService(repository, responder=responder)

    result = service.process_incoming_message(_message())

    assert result is not None
    assert not result.responded
    assert len(repository.messages) == 1
