"""Khmer reply templates.

Every template is a pure function. Time-dependent templates take ``now`` (an
aware datetime in the business timezone) so replies are reproducible.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Literal, Optional, Union

from .models import WEEKDAYS, ClosedInfo, OpeningHours, Product

KHMER_DAY_NAMES = {
    "monday": "ច័ន្ទ",
    "tuesday": "អង្គារ",
    "wednesday": "ពុធ",
    "thursday": "ព្រហស្បតិ៍",
    "friday": "សុក្រ",
    "saturday": "សៅរ៍",
    "sunday": "អាទិត្យ",
}

NoDataCategory = Literal["products", "hours", "address", "phone"]


# Acknowledgment and handover ---------------------------------------------------


def get_default_response() -> str:
    # "Hello! Thank you for your message. We are reviewing your question."
    return "សួស្តី! សូមអរគុណសម្រាប់សារ។ យើងកំពុងពិនិត្យមើលសំណួររបស់អ្នក។"


def get_handover_response() -> str:
    # "Please wait a moment, I will notify staff."
    return "សូមរង់ចាំបន្តិច ខ្ញុំនឹងជូនដំណឹងដល់បុគ្គលិក។"


def get_business_hours_unknown_response() -> str:
    return "សូមទាក់ទងមកយើងដោយផ្ទាល់សម្រាប់ព័ត៌មានម៉ោងធ្វើការ។"


def format_no_match_response() -> str:
    return get_handover_response()


def get_error_response() -> str:
    """Temporary technical problem; asks the customer to try again."""

    return (
        "អភ័យទោស មានបញ្ហាបច្ចេកទេសបណ្ដោះអាសន្ន។ សូមសាកល្បងផ្ញើសារម្ដងទៀត។ "
        "ប្រសិនបើបញ្ហានៅតែបន្ត សូមទាក់ទងមកយើងដោយផ្ទាល់។"
    )


# Business data --------------------------------------------------------------


def format_currency(price: Union[Decimal, float, int], currency: str) -> str:
    """``$3.50`` for USD, ``20,000 រៀល`` for KHR, ``<price> <currency>`` otherwise."""

    amount = price if isinstance(price, Decimal) else Decimal(str(price))
    code = currency.upper()
    if code == "USD":
        return f"${amount.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)}"
    if code == "KHR":
        rounded = amount.quantize(Decimal("0.001"), rounding=ROUND_HALF_UP)
        text = f"{rounded:,.3f}".rstrip("0").rstrip(".")
        return f"{text} រៀល"
    return f"{amount.normalize():f} {currency}"


def _product_lines(products: Iterable[Product]) -> str:
    return "\n".join(
        f"• {product.name} - {format_currency(product.price, product.currency)}"
        for product in products
    )


def format_price_response(name: str, price: Union[Decimal, float, int], currency: str) -> str:
    return f"សួស្តី! {name} មានតម្លៃ {format_currency(price, currency)}។ សូមអរគុណសម្រាប់ការសាកសួរ!"


def format_product_list_response(products: Iterable[Product]) -> str:
    return (
        f"សួស្តី! នេះគឺជាផលិតផលរបស់យើង:\n{_product_lines(products)}\n"
        "សូមសាកសួរអំពីផលិតផលណាមួយសម្រាប់ព័ត៌មានលម្អិត!"
    )


def format_product_not_found_response(query: str, available: Iterable[Product]) -> str:
    return (
        f'អភ័យទោស យើងរកមិនឃើញ "{query}"។ នេះគឺជាផលិតផលដែលមាន:\n{_product_lines(available)}\n'
        "សូមសាកសួរអំពីផលិតផលណាមួយខាងលើ!"
    )


def format_hours_response(hours: OpeningHours) -> str:
    lines = [
        f"• {KHMER_DAY_NAMES[day]}: {hours[day].open} - {hours[day].close}"
        for day in WEEKDAYS
        if day in hours
    ]
    if not lines:
        return get_business_hours_unknown_response()
    joined = "\n".join(lines)
    return f"សួស្តី! នេះគឺជាម៉ោងធ្វើការរបស់យើង:\n{joined}\nសូមអរគុណសម្រាប់ការសាកសួរ!"


def format_address_response(address: str) -> str:
    return f"សួស្តី! ទីតាំងរបស់យើងគឺ: {address}។ សូមអរគុណសម្រាប់ការសាកសួរ!"


def format_phone_response(phone: str) -> str:
    return f"សួស្តី! អ្នកអាចទាក់ទងមកយើងតាមលេខ: {phone}។ សូមអរគុណសម្រាប់ការសាកសួរ!"


def format_no_data_response(category: NoDataCategory) -> str:
    if category == "products":
        return "អភ័យទោស យើងមិនមានព័ត៌មានផលិតផលនៅពេលនេះទេ។ សូមទាក់ទងមកយើងដោយផ្ទាល់។"
    if category == "hours":
        return get_business_hours_unknown_response()
    if category == "address":
        return "អភ័យទោស យើងមិនមានព័ត៌មានទីតាំងនៅពេលនេះទេ។ សូមទាក់ទងមកយើងដោយផ្ទាល់។"
    if category == "phone":
        return "អភ័យទោស យើងមិនមានព័ត៌មានទំនាក់ទំនងនៅពេលនេះទេ។ សូមទាក់ទងមកយើងដោយផ្ទាល់។"
    raise ValueError(f"unknown category: {category}")


# Greetings and farewells ----------------------------------------------------


def _named_greeting(business_name: str) -> str:
    return f"សួស្តី! សូមស្វាគមន៍មក {business_name}។ តើយើងអាចជួយអ្នកដោយរបៀបណា?"


def _time_of_day_greeting(now: datetime) -> str:
    if now.hour < 12:
        salutation = "អរុណសួស្តី"
    elif now.hour < 18:
        salutation = "ទិវាសួស្តី"
    else:
        salutation = "សាយ័ណ្ហសួស្តី"
    return f"{salutation}! សូមស្វាគមន៍។ សូមសាកសួរអ្វីដែលអ្នកចង់ដឹង។"


def _generic_greeting() -> str:
    return "សួស្តី! សូមអរគុណដែលបានទាក់ទងមកយើង។ តើយើងអាចជួយអ្វីបានខ្លះ?"


def get_greeting_response(business_name: Optional[str], now: datetime) -> str:
    """Greet by business name when known, else alternate on the minute."""

    if business_name:
        return _named_greeting(business_name)
    if now.minute % 2 == 0:
        return _time_of_day_greeting(now)
    return _generic_greeting()


FAREWELL_VARIANTS = (
    "សូមអរគុណសម្រាប់ការទាក់ទង! ប្រសិនបើអ្នកមានសំណួរបន្ថែម សូមសាកសួរបានគ្រប់ពេល។ សូមឱ្យមានថ្ងៃល្អ!",
    "សូមអរគុណ! យើងរីករាយដែលបានជួយអ្នក។ សូមកុំស្ទាក់ស្ទើរក្នុងការទាក់ទងមកយើងម្ដងទៀត។",
)


def get_farewell_response(now: datetime) -> str:
    return FAREWELL_VARIANTS[now.minute % 2]


# Opening hours --------------------------------------------------------------


def get_closed_now_response(next_open_time: str, next_open_day: str) -> str:
    return (
        f"អភ័យទោស យើងបានបិទហើយនៅពេលនេះ។ យើងនឹងបើកវិញនៅថ្ងៃ{next_open_day} "
        f"ម៉ោង {next_open_time}។ សូមអរគុណសម្រាប់ការអត់ធ្មត់!"
    )


def get_closed_info(hours: OpeningHours, now: datetime) -> ClosedInfo:
    """Decide whether the business is closed at ``now`` and when it reopens.

    Checks today's window (a window with ``close < open`` runs past
    midnight), then yesterday's overnight window, then searches up to seven
    days ahead for the next opening. A closed business with no schedule at
    all yields ``ClosedInfo(is_closed=True)`` without a next opening.
    """

    current = f"{now.hour:02d}:{now.minute:02d}"
    weekday = now.weekday()

    today = hours.get(WEEKDAYS[weekday])
    if today is not None:
        if today.crosses_midnight:
            if current >= today.open:
                return ClosedInfo(is_closed=False)
        elif today.open <= current < today.close:
            return ClosedInfo(is_closed=False)

    yesterday = hours.get(WEEKDAYS[(weekday - 1) % 7])
    if yesterday is not None and yesterday.crosses_midnight and current < yesterday.close:
        return ClosedInfo(is_closed=False)

    for offset in range(8):
        day = WEEKDAYS[(now + timedelta(days=offset)).weekday()]
        schedule = hours.get(day)
        if schedule is None:
            continue
        if offset > 0 or current < schedule.open:
            return ClosedInfo(
                is_closed=True,
                next_open_time=schedule.open,
                next_open_day=KHMER_DAY_NAMES[day],
            )
    return ClosedInfo(is_closed=True)
