"""Public customer portal endpoints."""

from dataclasses import asdict

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from trocas.api.schemas import (
    CustomerOut,
    EligibilityOut,
    OrderItemOut,
    OrderLookupRequest,
    OrderLookupResponse,
    OrderOut,
    PortalSettingsOut,
    PortalStoreOut,
    PortalStoreResponse,
    ReturnRequestCreate,
    ReturnRequestOut,
    ReturnRequestResponse,
)
from trocas.database import get_session
from trocas.services.cache import QueryCache, get_cache
from trocas.services.order_lookup import Order, PortalSettings, get_store_by_slug, lookup_order
from trocas.services.returns import ReturnSubmission, SelectedItem, create_return_request

logger = structlog.get_logger()
router = APIRouter(prefix="/portal")


def order_out(order: Order) -> OrderOut:
    return OrderOut(
        id=order.id,
        number=order.number,
        customer=CustomerOut(name=order.customer_name, email=order.customer_email),
        items=[OrderItemOut.model_validate(item) for item in order.items],
        total=order.total,
        created_at=order.created_at,
        status=order.status,
    )


def settings_out(portal_settings: PortalSettings) -> PortalSettingsOut:
    return PortalSettingsOut(**asdict(portal_settings))


@router.post("/order-lookup", response_model=OrderLookupResponse)
async def order_lookup(
    request: OrderLookupRequest,
    session: AsyncSession = Depends(get_session),
):
    """Find a customer's order and tell whether it can still be returned."""
    result = await lookup_order(
        session,
        request.store_slug,
        request.order_number,
        request.customer_email,
    )
    return OrderLookupResponse(
        order=order_out(result.order),
        eligibility=EligibilityOut(**result.eligibility.to_dict()),
        settings=settings_out(result.settings),
        store_id=result.store_id,
    )


@router.get("/stores/{slug}", response_model=PortalStoreResponse)
async def get_portal_store(
    slug: str,
    session: AsyncSession = Depends(get_session),
):
    """Public store profile and return policy, for the portal landing page."""
    store = await get_store_by_slug(session, slug)
    return PortalStoreResponse(
        store=PortalStoreOut.model_validate(store),
        settings=settings_out(PortalSettings.from_row(store.settings)),
    )


@router.post("/stores/{slug}/return-requests", response_model=ReturnRequestResponse)
async def submit_return_request(
    slug: str,
    request: ReturnRequestCreate,
    session: AsyncSession = Depends(get_session),
    cache: QueryCache = Depends(get_cache),
):
    """Create a pending return request for an eligible order."""
    submission = ReturnSubmission(
        order_number=request.order_number,
        customer_email=request.customer_email,
        resolution_type=request.resolution_type,
        items=[
            SelectedItem(item_id=item.id, quantity=item.quantity, reason=item.reason)
            for item in request.items
        ],
        reason=request.reason,
        customer_name=request.customer_name,
        customer_phone=request.customer_phone,
        customer_postal_code=request.customer_postal_code,
        customer_address=request.customer_address,
        customer_address_number=request.customer_address_number,
        customer_district=request.customer_district,
        customer_city=request.customer_city,
        customer_state=request.customer_state,
    )
    return_request = await create_return_request(session, slug, submission, cache=cache)
    return ReturnRequestResponse(return_request=ReturnRequestOut.model_validate(return_request))
