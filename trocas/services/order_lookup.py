"""Order lookup for the customer portal."""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Callable

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trocas.exceptions import OrderNotFound, StoreNotFound
from trocas.integrations.nuvemshop import NuvemshopClient
from trocas.models.store import Store, StoreSettings
from trocas.services.eligibility import Clock, EligibilityResult, evaluate_eligibility, utc_now

logger = structlog.get_logger()

ClientFactory = Callable[[Store], NuvemshopClient]


@dataclass(frozen=True)
class PortalSettings:
    """Store settings as seen by the portal, with defaults for missing rows."""

    return_window_days: int = 7
    allow_refund: bool = True
    allow_store_credit: bool = True
    store_credit_bonus: int = 5
    requires_reason: bool = True
    allow_partial_returns: bool = True

    @classmethod
    def from_row(cls, row: StoreSettings | None) -> "PortalSettings":
        if row is None:
            return cls()
        return cls(
            return_window_days=row.return_window_days,
            allow_refund=row.allow_refund,
            allow_store_credit=row.allow_store_credit,
            store_credit_bonus=row.store_credit_bonus,
            requires_reason=row.requires_reason,
            allow_partial_returns=row.allow_partial_returns,
        )


@dataclass(frozen=True)
class OrderItem:
    id: str
    product_id: str | None
    name: str
    price: Decimal
    quantity: int
    image: str | None = None
    sku: str | None = None


@dataclass(frozen=True)
class Order:
    """Order normalized from the Nuvemshop payload."""

    id: str
    number: str
    customer_name: str
    customer_email: str
    total: Decimal
    created_at: str
    status: str | None
    items: list[OrderItem] = field(default_factory=list)

    def item(self, item_id: str) -> OrderItem | None:
        for item in self.items:
            if item.id == item_id:
                return item
        return None


@dataclass(frozen=True)
class OrderLookupResult:
    order: Order
    eligibility: EligibilityResult
    settings: PortalSettings
    store_id: str


def to_decimal(value: Any) -> Decimal:
    """Parse a Nuvemshop money string ("49.90") into a Decimal."""
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return Decimal("0")


def _customer(raw: dict[str, Any]) -> dict[str, Any]:
    return raw.get("customer") or {}


def normalize_order(raw: dict[str, Any]) -> Order:
    """Map a Nuvemshop order payload to :class:`Order`."""
    customer = _customer(raw)
    items = [
        OrderItem(
            id=str(product.get("id")),
            product_id=str(product["product_id"]) if product.get("product_id") else None,
            name=product.get("name", ""),
            price=to_decimal(product.get("price")),
            quantity=int(product.get("quantity") or 0),
            image=(product.get("image") or {}).get("src"),
            sku=product.get("sku"),
        )
        for product in raw.get("products", [])
    ]
    return Order(
        id=str(raw.get("id")),
        number=str(raw.get("number")),
        customer_name=customer.get("name", ""),
        customer_email=customer.get("email", ""),
        total=to_decimal(raw.get("total")),
        created_at=raw.get("created_at", ""),
        status=raw.get("status"),
        items=items,
    )


def normalize_order_number(order_number: str | int) -> str:
    return str(order_number).strip().lstrip("#")


def match_order(
    candidates: list[dict[str, Any]],
    order_number: str | int,
    customer_email: str,
) -> dict[str, Any] | None:
    """
    Pick the order whose number equals order_number (as strings) and whose
    customer email equals customer_email, ignoring case.
    """
    number = normalize_order_number(order_number)
    email = customer_email.strip().lower()

    for candidate in candidates:
        candidate_email = (_customer(candidate).get("email") or "").strip().lower()
        if str(candidate.get("number")) == number and candidate_email == email:
            return candidate
    return None


def client_for_store(store: Store) -> NuvemshopClient:
    """Build a Nuvemshop client with the store's credentials."""
    return NuvemshopClient(api_url=store.api_url, access_token=store.api_key)


async def get_store_by_slug(session: AsyncSession, slug: str) -> Store:
    result = await session.execute(select(Store).where(Store.slug == slug))
    store = result.scalar_one_or_none()
    if store is None:
        logger.warning("store_not_found", store_slug=slug)
        raise StoreNotFound()
    return store


async def lookup_order(
    session: AsyncSession,
    store_slug: str,
    order_number: str | int,
    customer_email: str,
    client_factory: ClientFactory | None = None,
    now: Clock = utc_now,
) -> OrderLookupResult:
    """
    Find a customer's order and check it against the store's return window.

    Raises:
        StoreNotFound: Unknown slug
        UpstreamAuthError: Store credentials rejected by Nuvemshop
        UpstreamUnavailable: Nuvemshop unreachable or failing
        OrderNotFound: No order with that number for that email
    """
    store = await get_store_by_slug(session, store_slug)
    portal_settings = PortalSettings.from_row(store.settings)

    client = (client_factory or client_for_store)(store)
    try:
        candidates = await client.search_orders(normalize_order_number(order_number))
    finally:
        await client.close()

    logger.info(
        "order_search_completed",
        store_id=store.id,
        order_number=str(order_number),
        candidates=len(candidates),
    )

    raw_order = match_order(candidates, order_number, customer_email)
    if raw_order is None:
        raise OrderNotFound()

    order = normalize_order(raw_order)
    eligibility = evaluate_eligibility(
        order.created_at,
        portal_settings.return_window_days,
        now=now,
    )

    logger.info(
        "order_lookup_eligibility",
        store_id=store.id,
        order_number=order.number,
        eligible=eligibility.is_eligible,
        days_since_order=eligibility.days_since_order,
        return_window_days=eligibility.return_window_days,
    )

    return OrderLookupResult(
        order=order,
        eligibility=eligibility,
        settings=portal_settings,
        store_id=store.id,
    )
