import pytest

from conftest import PHNOM_PENH, TEST_KEY_HEX, at
from replybot.bot.engine import BotEngine
from replybot.conversations.models import ConversationStatus, HandoverReason, SenderType
from replybot.conversations.service import IngestionService
from replybot.messenger.models import ParsedMessage, SendResult
import replybot.messenger.respond as respond_module
from replybot.messenger.respond import ResponseService, acknowledge_responder
from replybot.security.encryption import TokenCipher, TokenDecryptionError


def _inbound(text, mid="m_in_1", sender="user-1"):
    return ParsedMessage(
        sender_id=sender,
        recipient_id="page-123",
        timestamp=1_700_000_000_000,
        message_text=text,
        message_id=mid,
    )


def _plain_decrypt(token):
    return f"plain:{token}"


@pytest.fixture
def engine(gateway):
    return BotEngine(gateway, tz=PHNOM_PENH, clock=lambda: at(2024, 1, 1, 10, 0))


@pytest.fixture
def pipeline(repository, engine, messenger_client, fake_sleep):
    responses = ResponseService(
        repository,
        engine.process_message,
        client=messenger_client,
        decrypt=_plain_decrypt,
        sleep=fake_sleep,
    )
    return IngestionService(repository, responder=responses.process_and_respond)


def test_khmer_price_question_is_answered_and_recorded(make_tenant, repository, pipeline, messenger_client):
    tenant = make_tenant(access_token="stored-token")
    tenant.add_product("កាហ្វេ", "3.50")

    result = pipeline.process_incoming_message(_inbound("តម្លៃកាហ្វេប៉ុន្មាន?"))

    assert result.responded
    [sent] = messenger_client.sent
    assert sent["token"] == "plain:stored-token"
    assert sent["page_id"] == "page-123"
    assert sent["recipient_id"] == "user-1"
    assert "$3.50" in sent["text"]

    customer, bot = repository.messages_for(result.conversation_id)
    assert customer.sender_type is SenderType.CUSTOMER
    assert bot.sender_type is SenderType.BOT
    assert bot.content == sent["text"]
    assert bot.facebook_message_id == "m_bot_1"
    assert not bot.is_handover_trigger
    assert repository.conversations[result.conversation_id].status is ConversationStatus.ACTIVE


def test_low_confidence_reply_hands_over(make_tenant, repository, pipeline, messenger_client):
    make_tenant()

    result = pipeline.process_incoming_message(_inbound("qwerty zxcv"))

    bot = repository.messages_for(result.conversation_id)[-1]
    assert bot.is_handover_trigger
    assert bot.handover_reason is HandoverReason.LOW_CONFIDENCE
    convo = repository.conversations[result.conversation_id]
    assert convo.status is ConversationStatus.NEEDS_ATTENTION
    assert convo.handover_reason is HandoverReason.LOW_CONFIDENCE
    assert len(messenger_client.sent) == 1


def test_exhausted_send_escalates_without_storing_reply(
    make_tenant, repository, pipeline, messenger_client, sleeps
):
    make_tenant()
    messenger_client.results = [SendResult.failed(2, "Temporary issue")] * 3

    result = pipeline.process_incoming_message(_inbound("hello"))

    assert len(messenger_client.sent) == 3
    assert sleeps == [1.0, 2.0]
    assert [m.sender_type for m in repository.messages_for(result.conversation_id)] == [SenderType.CUSTOMER]
    assert repository.conversations[result.conversation_id].status is ConversationStatus.NEEDS_ATTENTION


def test_retry_recovers_after_rate_limit(make_tenant, repository, pipeline, messenger_client, sleeps):
    make_tenant()
    messenger_client.results = [SendResult.failed(613, "Too many calls"), SendResult.ok("m_bot_9")]

    result = pipeline.process_incoming_message(_inbound("hello"))

    assert sleeps == [60.0]
    assert repository.messages_for(result.conversation_id)[-1].facebook_message_id == "m_bot_9"
    assert repository.conversations[result.conversation_id].status is ConversationStatus.ACTIVE


def test_undecryptable_token_escalates_without_sending(make_tenant, repository, engine, messenger_client):
    make_tenant(access_token="not-a-valid-token")
    responses = ResponseService(
        repository,
        engine.process_message,
        client=messenger_client,
        decrypt=TokenCipher(TEST_KEY_HEX).decrypt,
    )
    pipeline = IngestionService(repository, responder=responses.process_and_respond)

    result = pipeline.process_incoming_message(_inbound("hello"))

    assert messenger_client.sent == []
    assert repository.conversations[result.conversation_id].status is ConversationStatus.NEEDS_ATTENTION


def test_missing_credentials_skip_reply(make_tenant, repository, pipeline, messenger_client):
    make_tenant(access_token=None)

    result = pipeline.process_incoming_message(_inbound("hello"))

    assert messenger_client.sent == []
    assert repository.conversations[result.conversation_id].status is ConversationStatus.ACTIVE


def test_real_cipher_round_trip_reaches_client(make_tenant, repository, engine, messenger_client):
    cipher = TokenCipher(TEST_KEY_HEX)
    make_tenant(access_token=cipher.encrypt("EAAB-page-token"))
    responses = ResponseService(
        repository, engine.process_message, client=messenger_client, decrypt=cipher.decrypt
    )

    IngestionService(repository, responder=responses.process_and_respond).process_incoming_message(
        _inbound("hello")
    )

    assert messenger_client.sent[0]["token"] == "EAAB-page-token"


def test_unexpected_error_escalates(make_tenant, repository, messenger_client):
    make_tenant()

    def broken_responder(tenant_id, message):
        raise RuntimeError("boom")

    responses = ResponseService(
        repository, broken_responder, client=messenger_client, decrypt=_plain_decrypt
    )
    result = IngestionService(repository, responder=responses.process_and_respond).process_incoming_message(
        _inbound("hello")
    )

    assert messenger_client.sent == []
    assert repository.conversations[result.conversation_id].status is ConversationStatus.NEEDS_ATTENTION


def test_failed_escalation_never_raises(make_tenant, repository, messenger_client, monkeypatch, caplog):
    tenant = make_tenant()

    def broken_decrypt(token):
        raise TokenDecryptionError("bad key")

    def broken_update(*args, **kwargs):
        raise RuntimeError("db down")

    monkeypatch.setattr(repository, "update_status", broken_update)
    responses = ResponseService(
        repository, acknowledge_responder, client=messenger_client, decrypt=broken_decrypt
    )
    pipeline = IngestionService(repository, responder=responses.process_and_respond)

    result = pipeline.process_incoming_message(_inbound("hello"))

    assert result is not None
    assert "Escalation failed" in caplog.text
    assert tenant.id == result.tenant_id


def test_acknowledge_mode_sends_default_template(make_tenant, repository, messenger_client):
    make_tenant()
    responses = ResponseService(
        repository, acknowledge_responder, client=messenger_client, decrypt=_plain_decrypt
    )

    result = IngestionService(repository, responder=responses.process_and_respond).process_incoming_message(
        _inbound("anything at all")
    )

    assert messenger_client.sent[0]["text"].startswith("សួស្តី! សូមអរគុណសម្រាប់សារ")
    assert repository.conversations[result.conversation_id].status is ConversationStatus.ACTIVE


def test_failed_conversation_update_after_send_is_logged_only(
    make_tenant, repository, pipeline, messenger_client, monkeypatch, caplog
):
    make_tenant()
    result = pipeline.process_incoming_message(_inbound("hello", mid="m_in_1"))

    def broken_touch(*args, **kwargs):
        raise RuntimeError("db blip")

    monkeypatch.setattr(repository, "touch_conversation", broken_touch)
    # Only the reply path runs against the broken write.
    responses = ResponseService(
        repository,
        acknowledge_responder,
        client=messenger_client,
        decrypt=_plain_decrypt,
    )
    responses.process_and_respond(result.tenant_id, result.conversation_id, "hello again")

    assert len(messenger_client.sent) == 2
    assert [m.sender_type for m in repository.messages_for(result.conversation_id)] == [
        SenderType.CUSTOMER,
        SenderType.BOT,
        SenderType.BOT,
    ]
    assert repository.conversations[result.conversation_id].status is ConversationStatus.ACTIVE
    assert "Failed to update conversation after send" in caplog.text


def test_failed_handover_update_after_send_is_logged_only(
    make_tenant, repository, messenger_client, engine, monkeypatch, caplog
):
    make_tenant()
    responses = ResponseService(
        repository, engine.process_message, client=messenger_client, decrypt=_plain_decrypt
    )
    pipeline = IngestionService(repository, responder=responses.process_and_respond)
    calls = []

    def broken_update(*args, **kwargs):
        calls.append(args)
        raise RuntimeError("db blip")

    monkeypatch.setattr(repository, "update_status", broken_update)

    result = pipeline.process_incoming_message(_inbound("qwerty zxcv"))

    assert len(messenger_client.sent) == 1
    assert len(calls) == 1
    assert repository.messages_for(result.conversation_id)[-1].is_handover_trigger
    assert "Handover update failed" in caplog.text
    assert "Unexpected error" not in caplog.text


def test_undecryptable_token_uses_current_status(make_tenant, repository, messenger_client, engine, monkeypatch):
    make_tenant()
    pipeline = IngestionService(repository)
    result = pipeline.process_incoming_message(_inbound("hello"))
    repository.conversations[result.conversation_id].status = ConversationStatus.OWNER_HANDLED
    seen = []

    def broken_decrypt(token):
        raise TokenDecryptionError("bad key")

    original = respond_module.on_send_precondition_failure

    def recording_transition(current):
        seen.append(current)
        return original(current)

    monkeypatch.setattr(respond_module, "on_send_precondition_failure", recording_transition)
    responses = ResponseService(
        repository, engine.process_message, client=messenger_client, decrypt=broken_decrypt
    )

    responses.process_and_respond(result.tenant_id, result.conversation_id, "hello")

    assert seen == [ConversationStatus.OWNER_HANDLED]
    assert messenger_client.sent == []
    assert repository.conversations[result.conversation_id].status is ConversationStatus.NEEDS_ATTENTION
