"""Merchant endpoints for return requests and dashboard metrics."""

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from trocas.api.middleware.auth import require_merchant
from trocas.api.schemas import (
    DashboardMetricsOut,
    ReturnRequestOut,
    ReturnRequestResponse,
    StatusUpdateRequest,
)
from trocas.database import get_session
from trocas.services.cache import QueryCache, cache_key, get_cache
from trocas.services.metrics import load_dashboard_metrics
from trocas.services.notifications import (
    NotificationDispatcher,
    StatusNotification,
    get_notification_dispatcher,
)
from trocas.services.returns import get_return_request, list_return_requests, transition_status
from trocas.services.stores import ensure_owner

logger = structlog.get_logger()
router = APIRouter()


@router.get("/return-requests")
async def get_return_requests(
    store_id: str | None = Query(None, alias="storeId", description="Filter by store"),
    owner_id: str = Depends(require_merchant),
    session: AsyncSession = Depends(get_session),
    cache: QueryCache = Depends(get_cache),
):
    """List the owner's return requests, newest first."""

    async def load():
        requests = await list_return_requests(session, owner_id, store_id)
        return [
            ReturnRequestOut.model_validate(r).model_dump(mode="json", by_alias=True)
            for r in requests
        ]

    key = cache_key("return-requests", owner_id, store_id or "all")
    return {"success": True, "returnRequests": await cache.get_or_load(key, load)}


@router.get("/return-requests/{return_request_id}", response_model=ReturnRequestResponse)
async def get_return_request_detail(
    return_request_id: str,
    owner_id: str = Depends(require_merchant),
    session: AsyncSession = Depends(get_session),
):
    return_request = await get_return_request(session, return_request_id)
    ensure_owner(return_request.store, owner_id)
    return ReturnRequestResponse(return_request=ReturnRequestOut.model_validate(return_request))


@router.post("/return-requests/{return_request_id}/status", response_model=ReturnRequestResponse)
async def update_return_request_status(
    return_request_id: str,
    request: StatusUpdateRequest,
    background_tasks: BackgroundTasks,
    owner_id: str = Depends(require_merchant),
    session: AsyncSession = Depends(get_session),
    cache: QueryCache = Depends(get_cache),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    """
    Approve, reject or complete a request.

    The customer email goes out after the response; its failure does not
    affect the status change.
    """
    return_request = await get_return_request(session, return_request_id)
    ensure_owner(return_request.store, owner_id)

    return_request = await transition_status(session, return_request, request.status, cache=cache)

    background_tasks.add_task(
        dispatcher.send_status_update,
        StatusNotification(
            status=return_request.status,
            customer_email=return_request.customer_email,
            customer_name=return_request.customer_name,
            order_number=return_request.order_number,
            store_name=return_request.store.name,
        ),
    )
    return ReturnRequestResponse(return_request=ReturnRequestOut.model_validate(return_request))


@router.get("/dashboard/metrics")
async def get_dashboard_metrics(
    store_id: str | None = Query(None, alias="storeId", description="Filter by store"),
    owner_id: str = Depends(require_merchant),
    session: AsyncSession = Depends(get_session),
    cache: QueryCache = Depends(get_cache),
):
    """Conversion and revenue figures for the dashboard cards."""

    async def load():
        metrics = await load_dashboard_metrics(session, owner_id, store_id)
        return DashboardMetricsOut.model_validate(metrics).model_dump(by_alias=True)

    key = cache_key("dashboard-metrics", owner_id, store_id or "all")
    return {"success": True, "metrics": await cache.get_or_load(key, load)}
