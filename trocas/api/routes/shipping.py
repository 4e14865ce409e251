"""Shipping label endpoints for approved return requests."""

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from trocas.api.middleware.auth import require_merchant
from trocas.api.schemas import DeliveryRangeOut, ShippingQuoteOut, ShippingRequest
from trocas.database import get_session
from trocas.exceptions import ValidationError
from trocas.services.cache import QueryCache, get_cache
from trocas.services.returns import get_return_request, invalidate_request_views
from trocas.services.shipping import ShippingOrchestrator, ShippingQuote, resume_step
from trocas.services.stores import ensure_owner

logger = structlog.get_logger()
router = APIRouter()


def get_orchestrator(session: AsyncSession = Depends(get_session)) -> ShippingOrchestrator:
    """Get shipping orchestrator (FastAPI dependency)."""
    return ShippingOrchestrator(session)


def quote_out(quote: ShippingQuote) -> dict:
    return ShippingQuoteOut(
        id=quote.id,
        name=quote.name,
        company=quote.company,
        price=quote.price,
        discount=quote.discount,
        delivery_time=quote.delivery_time,
        delivery_range=DeliveryRangeOut(min=quote.delivery_min, max=quote.delivery_max),
    ).model_dump(by_alias=True)


@router.post("/shipping")
async def shipping_action(
    request: ShippingRequest,
    owner_id: str = Depends(require_merchant),
    session: AsyncSession = Depends(get_session),
    orchestrator: ShippingOrchestrator = Depends(get_orchestrator),
    cache: QueryCache = Depends(get_cache),
):
    """
    Dispatch a shipping action for one return request.

    - ``calculate``: carrier quotes
    - ``create-label``: reserve the chosen ``serviceId``
    - ``checkout``: purchase, generate and fetch label and tracking
    - ``tracking``: current carrier tracking
    - ``status``: step the label dialog should open at
    """
    return_request = await get_return_request(session, request.return_request_id)
    ensure_owner(return_request.store, owner_id)

    logger.info(
        "shipping_action",
        action=request.action,
        return_request_id=return_request.id,
    )

    if request.action == "calculate":
        quotes = await orchestrator.calculate_quotes(return_request)
        return {"success": True, "quotes": [quote_out(q) for q in quotes]}

    if request.action == "create-label":
        if request.service_id in (None, ""):
            raise ValidationError("serviceId é obrigatório")
        shipping_id = await orchestrator.create_label(return_request, request.service_id)
        await invalidate_request_views(cache, owner_id)
        return {"success": True, "shippingId": shipping_id}

    if request.action == "checkout":
        purchase = await orchestrator.checkout(return_request)
        await invalidate_request_views(cache, owner_id)
        return {
            "success": True,
            "labelUrl": purchase.label_url,
            "trackingCode": purchase.tracking_code,
            "shippingCost": purchase.shipping_cost,
            "checkoutData": purchase.checkout,
        }

    if request.action == "tracking":
        info = await orchestrator.refresh_tracking(return_request)
        return {
            "success": True,
            "tracking": info.tracking,
            "trackingCode": info.tracking_code,
            "labelUrl": info.label_url,
        }

    return {
        "success": True,
        "step": resume_step(return_request),
        "shippingId": return_request.shipping_id,
        "labelUrl": return_request.label_url,
        "trackingCode": return_request.tracking_code,
    }
