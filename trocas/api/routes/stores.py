"""Merchant store management endpoints."""

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from trocas.api.middleware.auth import require_merchant
from trocas.api.schemas import (
    StoreAddressUpdate,
    StoreListResponse,
    StoreOut,
    StoreResponse,
    StoreSettingsOut,
    StoreSettingsResponse,
    StoreSettingsUpdate,
)
from trocas.database import get_session
from trocas.services import stores as store_service
from trocas.services.cache import QueryCache, get_cache
from trocas.services.returns import invalidate_request_views

logger = structlog.get_logger()
router = APIRouter(prefix="/stores")


@router.get("", response_model=StoreListResponse)
async def list_stores(
    owner_id: str = Depends(require_merchant),
    session: AsyncSession = Depends(get_session),
):
    stores = await store_service.list_stores(session, owner_id)
    return StoreListResponse(stores=[StoreOut.model_validate(s) for s in stores])


@router.patch("/{store_id}/settings", response_model=StoreSettingsResponse)
async def update_store_settings(
    store_id: str,
    request: StoreSettingsUpdate,
    owner_id: str = Depends(require_merchant),
    session: AsyncSession = Depends(get_session),
):
    """Change the return policy; only the fields sent are updated."""
    store = await store_service.get_owned_store(session, store_id, owner_id)
    store_settings = await store_service.update_settings(
        session,
        store,
        request.model_dump(exclude_unset=True),
    )
    return StoreSettingsResponse(settings=StoreSettingsOut.model_validate(store_settings))


@router.put("/{store_id}/address", response_model=StoreResponse)
async def update_store_address(
    store_id: str,
    request: StoreAddressUpdate,
    owner_id: str = Depends(require_merchant),
    session: AsyncSession = Depends(get_session),
):
    """Set the address reverse shipments are sent to."""
    store = await store_service.get_owned_store(session, store_id, owner_id)
    store = await store_service.update_address(session, store, request.to_columns())
    return StoreResponse(store=StoreOut.model_validate(store))


@router.delete("/{store_id}")
async def delete_store(
    store_id: str,
    owner_id: str = Depends(require_merchant),
    session: AsyncSession = Depends(get_session),
    cache: QueryCache = Depends(get_cache),
):
    """Remove a store together with its settings and return requests."""
    store = await store_service.get_owned_store(session, store_id, owner_id)
    await store_service.delete_store(session, store)
    await invalidate_request_views(cache, owner_id)
    return {"success": True, "storeId": store_id}
