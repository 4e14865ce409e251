"""Merchant-side store management."""

from dataclasses import dataclass
from typing import Any

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from trocas.config import settings
from trocas.exceptions import PermissionDenied, StoreNotFound, ValidationError
from trocas.integrations.nuvemshop import NuvemshopClient, localized_name
from trocas.models.return_request import ReturnRequest
from trocas.models.store import CreditFormat, Store, StoreSettings
from trocas.services.order_lookup import ClientFactory, client_for_store, to_decimal

logger = structlog.get_logger()

MAX_STORE_CREDIT_BONUS = 50

SETTINGS_FIELDS = (
    "return_window_days",
    "allow_refund",
    "allow_store_credit",
    "store_credit_bonus",
    "requires_reason",
    "allow_partial_returns",
    "credit_format",
)

ADDRESS_FIELDS = (
    "address_street",
    "address_number",
    "address_complement",
    "address_district",
    "address_city",
    "address_state",
    "address_postal_code",
    "phone",
    "document",
)


@dataclass(frozen=True)
class StoreProfile:
    """Store profile as reported by Nuvemshop."""

    id: str
    name: str
    email: str | None
    currency: str | None


def ensure_owner(store: Store, owner_id: str) -> None:
    """Reject access to a store of another owner."""
    if store.owner_id != owner_id:
        logger.warning("store_access_denied", store_id=store.id, owner_id=owner_id)
        raise PermissionDenied("Acesso negado a esta loja")


def default_settings(store_id: str) -> StoreSettings:
    return StoreSettings(
        store_id=store_id,
        return_window_days=settings.default_return_window_days,
        allow_refund=True,
        allow_store_credit=True,
        store_credit_bonus=settings.default_store_credit_bonus,
        requires_reason=True,
        allow_partial_returns=True,
        credit_format=CreditFormat.COUPON.value,
    )


def validate_settings_update(changes: dict[str, Any]) -> None:
    unknown = set(changes) - set(SETTINGS_FIELDS)
    if unknown:
        raise ValidationError(f"Campos inválidos: {', '.join(sorted(unknown))}")

    window = changes.get("return_window_days")
    if window is not None and window < 0:
        raise ValidationError("O prazo de devolução não pode ser negativo")

    bonus = changes.get("store_credit_bonus")
    if bonus is not None and not 0 <= bonus <= MAX_STORE_CREDIT_BONUS:
        raise ValidationError(f"O bônus deve estar entre 0 e {MAX_STORE_CREDIT_BONUS}%")

    credit_format = changes.get("credit_format")
    if credit_format is not None and credit_format not in {f.value for f in CreditFormat}:
        raise ValidationError(f"Formato de crédito inválido: {credit_format}")


async def get_owned_store(session: AsyncSession, store_id: str, owner_id: str) -> Store:
    result = await session.execute(select(Store).where(Store.id == store_id))
    store = result.scalar_one_or_none()
    if store is None:
        raise StoreNotFound()
    ensure_owner(store, owner_id)
    return store


async def list_stores(session: AsyncSession, owner_id: str) -> list[Store]:
    """Owner's stores with their settings, newest first."""
    result = await session.execute(
        select(Store).where(Store.owner_id == owner_id).order_by(Store.created_at.desc())
    )
    return list(result.scalars().all())


async def update_settings(
    session: AsyncSession,
    store: Store,
    changes: dict[str, Any],
) -> StoreSettings:
    """Apply a partial settings update, creating the row with defaults if missing."""
    validate_settings_update(changes)

    store_settings = store.settings
    if store_settings is None:
        store_settings = default_settings(store.id)
        session.add(store_settings)
        store.settings = store_settings

    for field_name, value in changes.items():
        if value is not None:
            setattr(store_settings, field_name, value)

    await session.commit()
    await session.refresh(store_settings)

    logger.info("store_settings_updated", store_id=store.id, fields=sorted(changes))
    return store_settings


async def update_address(session: AsyncSession, store: Store, address: dict[str, Any]) -> Store:
    """Replace the store's shipping address and contact details."""
    unknown = set(address) - set(ADDRESS_FIELDS)
    if unknown:
        raise ValidationError(f"Campos inválidos: {', '.join(sorted(unknown))}")

    for field_name in ADDRESS_FIELDS:
        if field_name in address:
            setattr(store, field_name, address[field_name] or None)
    if store.address_state:
        store.address_state = store.address_state.upper()

    await session.commit()
    await session.refresh(store)

    logger.info(
        "store_address_updated",
        store_id=store.id,
        has_shipping_address=store.has_shipping_address,
    )
    return store


async def delete_store(session: AsyncSession, store: Store) -> None:
    """Delete a store with its settings and return requests."""
    store_id = store.id
    owner_id = store.owner_id
    await session.execute(delete(ReturnRequest).where(ReturnRequest.store_id == store_id))
    await session.execute(delete(StoreSettings).where(StoreSettings.store_id == store_id))
    await session.execute(delete(Store).where(Store.id == store_id))
    await session.commit()

    logger.info("store_deleted", store_id=store_id, owner_id=owner_id)


async def validate_credentials(
    api_key: str,
    api_url: str,
    client: NuvemshopClient | None = None,
) -> StoreProfile:
    """Check Nuvemshop credentials by fetching the store profile."""
    client = client or NuvemshopClient(api_url=api_url, access_token=api_key)
    try:
        data = await client.get_store()
    finally:
        await client.close()

    store_id = str(data.get("id"))
    profile = StoreProfile(
        id=store_id,
        name=localized_name(data.get("name"), f"Store {store_id}"),
        email=data.get("email"),
        currency=data.get("main_currency"),
    )
    logger.info("store_credentials_validated", nuvemshop_store_id=store_id)
    return profile


async def list_recent_orders(
    store: Store,
    client_factory: ClientFactory | None = None,
) -> list[dict[str, Any]]:
    """Most recent orders of a store, in any status, for the dashboard."""
    client = (client_factory or client_for_store)(store)
    try:
        orders = await client.list_orders(per_page=50)
    finally:
        await client.close()

    return [
        {
            "id": str(order.get("id")),
            "number": str(order.get("number")),
            "customer_name": (order.get("customer") or {}).get("name"),
            "customer_email": (order.get("customer") or {}).get("email"),
            "total": float(to_decimal(order.get("total"))),
            "created_at": order.get("created_at"),
            "status": order.get("status"),
        }
        for order in orders
    ]
