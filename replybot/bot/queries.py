"""Tenant-scoped business data lookups used by the bot engine.

Every query filters by ``tenant_id``. Database failures are logged and
reported as "no data" so the engine falls back to a no-data reply; nothing is
ever invented.
"""

from __future__ import annotations

import re
from typing import Dict, List, Optional, Protocol, Sequence
from uuid import UUID

import psycopg
from psycopg.rows import dict_row

from ..app_logging import StructuredLogger, get_logger
from ..conversations.schemas import BusinessRecord
from .models import OpeningHours, Product, parse_opening_hours

_WHITESPACE_RE = re.compile(r"\s+")


def _normalize_name(value: str) -> str:
    return _WHITESPACE_RE.sub(" ", value.lower()).strip()


def match_product(products: Sequence[Product], query: str) -> Optional[Product]:
    """Pick the best product for ``query``.

    Tiers, first hit wins: exact name, name contains query, query contains
    name. Comparison is case-insensitive on whitespace-normalised names.
    """

    needle = _normalize_name(query)
    if not needle:
        return None
    names = [(product, _normalize_name(product.name)) for product in products]
    for product, name in names:
        if name == needle:
            return product
    for product, name in names:
        if needle in name:
            return product
    for product, name in names:
        if name and name in needle:
            return product
    return None


class BusinessDataGateway(Protocol):
    def find_product_by_name(self, tenant_id: UUID, query: str) -> Optional[Product]: ...

    def get_all_products(self, tenant_id: UUID) -> List[Product]: ...

    def get_business_hours(self, tenant_id: UUID) -> Optional[OpeningHours]: ...

    def get_business_address(self, tenant_id: UUID) -> Optional[str]: ...

    def get_business_phone(self, tenant_id: UUID) -> Optional[str]: ...

    def get_business_name(self, tenant_id: UUID) -> Optional[str]: ...


class PostgresBusinessDataGateway:
    """Read products and profile fields with service-level credentials."""

    def __init__(self, conn: psycopg.Connection, *, logger: StructuredLogger | None = None) -> None:
        self._conn = conn
        self.log = logger or get_logger("BOT")

    def _cursor(self):
        return self._conn.cursor(row_factory=dict_row)

    def _active_products(self, tenant_id: UUID, *, what: str) -> Optional[List[Product]]:
        try:
            with self._cursor() as cur:
                cur.execute(
                    """
                    SELECT id, name, price, currency, is_active
                    FROM products
                    WHERE tenant_id = %s AND is_active = true
                    ORDER BY name
                    """,
                    (tenant_id,),
                )
                rows = cur.fetchall()
        except psycopg.Error as exc:
            self.log.error(f"{what} query failed", tenant_id=tenant_id, error=str(exc))
            return None
        return [Product(**row) for row in rows]

    def _business_field(self, tenant_id: UUID, column: str, *, what: str):
        try:
            with self._cursor() as cur:
                # ``column`` is always one of the literals passed below.
                cur.execute(f"SELECT {column} FROM businesses WHERE id = %s", (tenant_id,))
                row = cur.fetchone()
        except psycopg.Error as exc:
            self.log.error(f"{what} query failed", tenant_id=tenant_id, error=str(exc))
            return None
        return row[column] if row else None

    def find_product_by_name(self, tenant_id: UUID, query: str) -> Optional[Product]:
        products = self._active_products(tenant_id, what="Product")
        if not products:
            return None
        return match_product(products, query)

    def get_all_products(self, tenant_id: UUID) -> List[Product]:
        return self._active_products(tenant_id, what="Product list") or []

    def get_business_hours(self, tenant_id: UUID) -> Optional[OpeningHours]:
        raw = self._business_field(tenant_id, "opening_hours", what="Business hours")
        hours = parse_opening_hours(raw)
        return hours or None

    def get_business_address(self, tenant_id: UUID) -> Optional[str]:
        return self._business_field(tenant_id, "address", what="Business address") or None

    def get_business_phone(self, tenant_id: UUID) -> Optional[str]:
        return self._business_field(tenant_id, "phone", what="Business phone") or None

    def get_business_name(self, tenant_id: UUID) -> Optional[str]:
        return self._business_field(tenant_id, "name", what="Business name") or None


class InMemoryBusinessDataGateway:
    """Gateway over plain dictionaries, used by tests and local experiments."""

    def __init__(self) -> None:
        self.businesses: Dict[UUID, BusinessRecord] = {}
        self.products: Dict[UUID, List[Product]] = {}

    def add_business(self, business: BusinessRecord) -> BusinessRecord:
        self.businesses[business.id] = business
        return business

    def add_product(self, tenant_id: UUID, product: Product) -> Product:
        self.products.setdefault(tenant_id, []).append(product)
        return product

    def get_all_products(self, tenant_id: UUID) -> List[Product]:
        active = [p for p in self.products.get(tenant_id, []) if p.is_active]
        return sorted(active, key=lambda p: p.name)

    def find_product_by_name(self, tenant_id: UUID, query: str) -> Optional[Product]:
        return match_product(self.get_all_products(tenant_id), query)

    def get_business_hours(self, tenant_id: UUID) -> Optional[OpeningHours]:
        business = self.businesses.get(tenant_id)
        if business is None:
            return None
        return parse_opening_hours(business.opening_hours) or None

    def get_business_address(self, tenant_id: UUID) -> Optional[str]:
        business = self.businesses.get(tenant_id)
        return business.address if business and business.address else None

    def get_business_phone(self, tenant_id: UUID) -> Optional[str]:
        business = self.businesses.get(tenant_id)
        return business.phone if business and business.phone else None

    def get_business_name(self, tenant_id: UUID) -> Optional[str]:
        business = self.businesses.get(tenant_id)
        return business.name if business and business.name else None
