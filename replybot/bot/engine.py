"""Rules-based reply engine.

Classifies the customer's message, looks up the tenant's own data and renders
a Khmer reply with a confidence level. Prices, hours, address and phone
numbers always come from the data gateway.
"""

from __future__ import annotations

from datetime import datetime, tzinfo
from typing import Callable, Optional
from uuid import UUID
from zoneinfo import ZoneInfo

from ..app_logging import StructuredLogger, get_logger
from ..config import get_settings
from . import templates
from .models import BotResponse, Confidence, Intent
from .queries import BusinessDataGateway
from .rules import classify_intent


class BotEngine:
    """Turn a customer message into a :class:`BotResponse`."""

    def __init__(
        self,
        gateway: BusinessDataGateway,
        *,
        tz: Optional[tzinfo] = None,
        clock: Optional[Callable[[], datetime]] = None,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        self.gateway = gateway
        self.tz = tz or ZoneInfo(get_settings().business_timezone)
        self._clock = clock or (lambda: datetime.now(self.tz))
        self.log = logger or get_logger("BOT")

    def now(self) -> datetime:
        current = self._clock()
        if current.tzinfo is None:
            return current.replace(tzinfo=self.tz)
        return current.astimezone(self.tz)

    def process_message(self, tenant_id: UUID, message: str) -> BotResponse:
        """Never raises; failures produce the error template at low confidence."""

        try:
            match = classify_intent(message)
            if match.intent is Intent.PRICE_QUERY:
                return self._price(tenant_id, match.extracted_entity)
            if match.intent is Intent.HOURS_QUERY:
                return self._hours(tenant_id)
            if match.intent is Intent.LOCATION_QUERY:
                return self._location(tenant_id)
            if match.intent is Intent.PHONE_QUERY:
                return self._phone(tenant_id)
            if match.intent is Intent.GREETING:
                name = self.gateway.get_business_name(tenant_id)
                return BotResponse(
                    response_text=templates.get_greeting_response(name, self.now()),
                    confidence=Confidence.HIGH,
                    intent=Intent.GREETING,
                )
            if match.intent is Intent.FAREWELL:
                return BotResponse(
                    response_text=templates.get_farewell_response(self.now()),
                    confidence=Confidence.HIGH,
                    intent=Intent.FAREWELL,
                )
            return BotResponse(
                response_text=templates.format_no_match_response(),
                confidence=Confidence.LOW,
                intent=Intent.GENERAL_FAQ,
            )
        except Exception as exc:
            self.log.error("Engine processing failed", tenant_id=tenant_id, error=str(exc))
            return BotResponse(
                response_text=templates.get_error_response(),
                confidence=Confidence.LOW,
                intent=Intent.GENERAL_FAQ,
            )

    # Handlers ------------------------------------------------------------------
    def _price(self, tenant_id: UUID, entity: Optional[str]) -> BotResponse:
        if not entity:
            products = self.gateway.get_all_products(tenant_id)
            if not products:
                return self._no_data("products", Intent.PRICE_QUERY)
            return BotResponse(
                response_text=templates.format_product_list_response(products),
                confidence=Confidence.MEDIUM,
                intent=Intent.PRICE_QUERY,
            )

        product = self.gateway.find_product_by_name(tenant_id, entity)
        if product is not None:
            return BotResponse(
                response_text=templates.format_price_response(
                    product.name, product.price, product.currency
                ),
                confidence=Confidence.HIGH,
                intent=Intent.PRICE_QUERY,
                matched_product=product.name,
            )

        available = self.gateway.get_all_products(tenant_id)
        if available:
            return BotResponse(
                response_text=templates.format_product_not_found_response(entity, available),
                confidence=Confidence.MEDIUM,
                intent=Intent.PRICE_QUERY,
            )
        return self._no_data("products", Intent.PRICE_QUERY)

    def _hours(self, tenant_id: UUID) -> BotResponse:
        hours = self.gateway.get_business_hours(tenant_id)
        if not hours:
            return self._no_data("hours", Intent.HOURS_QUERY)

        closed = templates.get_closed_info(hours, self.now())
        if closed.is_closed and closed.next_open_time and closed.next_open_day:
            text = templates.get_closed_now_response(closed.next_open_time, closed.next_open_day)
        else:
            text = templates.format_hours_response(hours)
        return BotResponse(response_text=text, confidence=Confidence.HIGH, intent=Intent.HOURS_QUERY)

    def _location(self, tenant_id: UUID) -> BotResponse:
        address = self.gateway.get_business_address(tenant_id)
        if not address:
            return self._no_data("address", Intent.LOCATION_QUERY)
        return BotResponse(
            response_text=templates.format_address_response(address),
            confidence=Confidence.HIGH,
            intent=Intent.LOCATION_QUERY,
        )

    def _phone(self, tenant_id: UUID) -> BotResponse:
        phone = self.gateway.get_business_phone(tenant_id)
        if not phone:
            return self._no_data("phone", Intent.PHONE_QUERY)
        return BotResponse(
            response_text=templates.format_phone_response(phone),
            confidence=Confidence.HIGH,
            intent=Intent.PHONE_QUERY,
        )

    @staticmethod
    def _no_data(category: templates.NoDataCategory, intent: Intent) -> BotResponse:
        return BotResponse(
            response_text=templates.format_no_data_response(category),
            confidence=Confidence.LOW,
            intent=intent,
        )
