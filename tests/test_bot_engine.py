import uuid

import pytest

from conftest import PHNOM_PENH, at
from replybot.bot import templates
from replybot.bot.engine import BotEngine
from replybot.bot.models import Confidence, Intent

WEEKDAY_HOURS = {
    "monday": {"open": "08:00", "close": "17:00"},
    "tuesday": {"open": "08:00", "close": "17:00"},
}


@pytest.fixture
def engine_at(gateway):
    def _make(when=None):
        moment = when or at(2024, 1, 1, 10, 0)
        return BotEngine(gateway, tz=PHNOM_PENH, clock=lambda: moment)

    return _make


def test_khmer_price_question_answers_with_tenant_price(make_tenant, engine_at):
    tenant = make_tenant()
    tenant.add_product("កាហ្វេ", "3.50")

    reply = engine_at().process_message(tenant.id, "តម្លៃកាហ្វេប៉ុន្មាន?")

    assert reply.intent is Intent.PRICE_QUERY
    assert reply.confidence is Confidence.HIGH
    assert reply.matched_product == "កាហ្វេ"
    assert "$3.50" in reply.response_text
    assert not reply.needs_handover


def test_unknown_product_lists_alternatives(make_tenant, engine_at):
    tenant = make_tenant()
    tenant.add_product("Latte", "2.75")
    tenant.add_product("Mocha", "3", active=False)

    reply = engine_at().process_message(tenant.id, "how much is pizza")

    assert reply.confidence is Confidence.MEDIUM
    assert '"pizza"' in reply.response_text
    assert "Latte - $2.75" in reply.response_text
    assert "Mocha" not in reply.response_text


def test_menu_request_lists_products(make_tenant, engine_at):
    tenant = make_tenant()
    tenant.add_product("បាយឆា", "8000", "KHR")

    reply = engine_at().process_message(tenant.id, "menu")

    assert reply.confidence is Confidence.MEDIUM
    assert "បាយឆា - 8,000 រៀល" in reply.response_text


def test_price_question_without_products_hands_over(make_tenant, engine_at):
    tenant = make_tenant()

    reply = engine_at().process_message(tenant.id, "menu")

    assert reply.confidence is Confidence.LOW
    assert reply.response_text == templates.format_no_data_response("products")
    assert reply.needs_handover


def test_hours_while_open_lists_schedule(make_tenant, engine_at):
    tenant = make_tenant(opening_hours=WEEKDAY_HOURS)

    reply = engine_at(at(2024, 1, 1, 10, 0)).process_message(tenant.id, "ម៉ោងបើក?")

    assert reply.intent is Intent.HOURS_QUERY
    assert reply.confidence is Confidence.HIGH
    assert "ច័ន្ទ: 08:00 - 17:00" in reply.response_text


def test_hours_while_closed_names_next_opening(make_tenant, engine_at):
    tenant = make_tenant(opening_hours=WEEKDAY_HOURS)

    reply = engine_at(at(2024, 1, 1, 18, 30)).process_message(tenant.id, "when do you open")

    assert reply.response_text == templates.get_closed_now_response("08:00", "អង្គារ")


def test_hours_unknown(make_tenant, engine_at):
    tenant = make_tenant(opening_hours={"monday": {"open": "late"}})

    reply = engine_at().process_message(tenant.id, "hours")

    assert reply.confidence is Confidence.LOW
    assert reply.response_text == templates.get_business_hours_unknown_response()


def test_location_and_phone(make_tenant, engine_at):
    tenant = make_tenant(address="#12 Street 240, Phnom Penh", phone="012 345 678")
    engine = engine_at()

    location = engine.process_message(tenant.id, "where are you")
    phone = engine.process_message(tenant.id, "phone number?")

    assert location.intent is Intent.LOCATION_QUERY
    assert "#12 Street 240, Phnom Penh" in location.response_text
    assert phone.intent is Intent.PHONE_QUERY
    assert "012 345 678" in phone.response_text


def test_missing_profile_fields_hand_over(make_tenant, engine_at):
    tenant = make_tenant()
    engine = engine_at()

    assert engine.process_message(tenant.id, "address").confidence is Confidence.LOW
    assert engine.process_message(tenant.id, "phone").confidence is Confidence.LOW


def test_greeting_uses_business_name(make_tenant, engine_at):
    tenant = make_tenant(name="Coffee Corner")

    reply = engine_at().process_message(tenant.id, "សួស្តី")

    assert reply.intent is Intent.GREETING
    assert "Coffee Corner" in reply.response_text


def test_farewell(make_tenant, engine_at):
    tenant = make_tenant()

    reply = engine_at(at(2024, 1, 1, 10, 1)).process_message(tenant.id, "thank you")

    assert reply.intent is Intent.FAREWELL
    assert reply.response_text == templates.FAREWELL_VARIANTS[1]


def test_unclassified_message_hands_over(make_tenant, engine_at):
    tenant = make_tenant()

    reply = engine_at().process_message(tenant.id, "qwerty zxcv")

    assert reply.intent is Intent.GENERAL_FAQ
    assert reply.confidence is Confidence.LOW
    assert reply.response_text == templates.get_handover_response()


def test_gateway_failure_returns_error_template(engine_at, gateway, monkeypatch):
    def boom(tenant_id):
        raise RuntimeError("gateway down")

    monkeypatch.setattr(gateway, "get_all_products", boom)

    reply = engine_at().process_message(uuid.uuid4(), "menu")

    assert reply.response_text == templates.get_error_response()
    assert reply.confidence is Confidence.LOW


def test_naive_clock_is_read_in_business_timezone(gateway):
    from datetime import datetime

    engine = BotEngine(gateway, tz=PHNOM_PENH, clock=lambda: datetime(2024, 1, 1, 9, 0))

    assert engine.now().tzinfo is PHNOM_PENH
    assert engine.now().hour == 9
