"""Bootstrap a demo business connected to a Facebook page.

Reads ``SEED_*`` variables, creates the schema when asked to, and upserts one
business (with its page access token encrypted under ``ENCRYPTION_KEY``) plus
a small product catalogue. Intended for local development only.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from decimal import Decimal

from dotenv import load_dotenv
from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from replybot.config import get_settings
from replybot.models import Base, Business, Product
from replybot.models.session import get_engine
from replybot.security import get_token_cipher

logger = logging.getLogger("seed")

DEFAULT_HOURS = {
    day: {"open": "07:00", "close": "21:00"}
    for day in ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday")
}

DEFAULT_PRODUCTS: tuple[tuple[str, Decimal, str], ...] = (
    ("កាហ្វេ", Decimal("3.50"), "USD"),
    ("Iced latte", Decimal("2.75"), "USD"),
    ("បាយឆា", Decimal("8000"), "KHR"),
)


@dataclass(slots=True)
class SeedConfig:
    business_name: str
    page_id: str
    page_access_token: str | None
    address: str | None
    phone: str | None
    create_schema: bool


def _to_bool(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def _load_config() -> SeedConfig:
    page_id = os.getenv("SEED_PAGE_ID", "").strip()
    if not page_id:
        raise RuntimeError("SEED_PAGE_ID is required")
    return SeedConfig(
        business_name=os.getenv("SEED_BUSINESS_NAME", "Demo Coffee").strip(),
        page_id=page_id,
        page_access_token=os.getenv("SEED_PAGE_ACCESS_TOKEN") or None,
        address=os.getenv("SEED_ADDRESS") or None,
        phone=os.getenv("SEED_PHONE") or None,
        create_schema=_to_bool(os.getenv("SEED_CREATE_SCHEMA")),
    )


def provision_business(factory: sessionmaker[Session], config: SeedConfig) -> Business:
    """Create or update the demo business and its catalogue."""

    encrypted = None
    if config.page_access_token:
        encrypted = get_token_cipher().encrypt(config.page_access_token)

    with factory() as session:
        business = session.execute(
            select(Business).where(Business.facebook_page_id == config.page_id)
        ).scalar_one_or_none()
        if business is None:
            business = Business(
                name=config.business_name,
                facebook_page_id=config.page_id,
                opening_hours=DEFAULT_HOURS,
                address=config.address,
                phone=config.phone,
            )
            session.add(business)
            session.flush()
            for name, price, currency in DEFAULT_PRODUCTS:
                session.add(
                    Product(tenant_id=business.id, name=name, price=price, currency=currency)
                )
            logger.info("Created business %s for page %s", business.id, config.page_id)
        else:
            logger.info("Business for page %s already exists; updating.", config.page_id)
            business.name = config.business_name
        if encrypted is not None:
            business.facebook_access_token = encrypted
        session.commit()
        return business


def main() -> None:
    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")

    config = _load_config()
    engine = get_engine(get_settings().database_url)
    if config.create_schema:
        Base.metadata.create_all(engine)
        logger.info("Schema ensured successfully.")

    factory = sessionmaker(bind=engine, expire_on_commit=False, future=True)
    business = provision_business(factory, config)
    logger.info("Seed process completed. Tenant ID: %s", business.id)


if __name__ == "__main__":
    main()
