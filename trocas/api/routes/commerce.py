"""Nuvemshop credential validation and order listing for the dashboard."""

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from trocas.api.middleware.auth import require_merchant
from trocas.api.schemas import CommerceRequest, OrderSummaryOut, StoreProfileOut
from trocas.database import get_session
from trocas.exceptions import ValidationError
from trocas.services import stores as store_service

logger = structlog.get_logger()
router = APIRouter()


@router.post("/commerce")
async def commerce_action(
    request: CommerceRequest,
    owner_id: str = Depends(require_merchant),
    session: AsyncSession = Depends(get_session),
):
    """
    Dispatch a commerce action.

    - ``validate``: check ``apiKey``/``apiUrl`` against Nuvemshop
    - ``list-orders``: recent orders of one of the owner's stores
    """
    logger.info("commerce_action", action=request.action, owner_id=owner_id)

    if request.action == "validate":
        if not request.api_key or not request.api_url:
            raise ValidationError("apiKey e apiUrl são obrigatórios")
        profile = await store_service.validate_credentials(request.api_key, request.api_url)
        return {
            "success": True,
            "store": StoreProfileOut.model_validate(profile).model_dump(by_alias=True),
        }

    if not request.store_id:
        raise ValidationError("storeId é obrigatório")
    store = await store_service.get_owned_store(session, request.store_id, owner_id)
    orders = await store_service.list_recent_orders(store)
    return {
        "success": True,
        "orders": [OrderSummaryOut(**order).model_dump(by_alias=True) for order in orders],
    }
