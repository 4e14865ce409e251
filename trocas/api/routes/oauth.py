"""Nuvemshop OAuth connect endpoints."""

import structlog
from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession

from trocas.api.middleware.auth import require_merchant
from trocas.api.schemas import OAuthRequest
from trocas.database import get_session
from trocas.exceptions import ValidationError
from trocas.services import oauth as oauth_service

logger = structlog.get_logger()
router = APIRouter(prefix="/oauth")


@router.post("")
async def oauth_action(
    request: OAuthRequest,
    owner_id: str = Depends(require_merchant),
    session: AsyncSession = Depends(get_session),
):
    """
    Dispatch an OAuth action.

    - ``get-install-url``: authorization URL with a signed state
    - ``exchange-token``: finish the flow and create or refresh the store
    """
    if request.action == "get-install-url":
        install_url = oauth_service.build_install_url(owner_id, request.store_name or "")
        return {"success": True, "installUrl": install_url}

    if not request.code or not request.state:
        raise ValidationError("code e state são obrigatórios")

    connected = await oauth_service.connect_store(session, owner_id, request.code, request.state)
    return {
        "success": True,
        "storeId": connected.store_id,
        "storeName": connected.store_name,
        "updated": connected.updated,
    }


@router.get("/callback", response_class=HTMLResponse)
async def oauth_callback(
    code: str | None = Query(None),
    state: str | None = Query(None),
):
    """Redirect target of Nuvemshop; relays the code to the dashboard window."""
    if not code or not state:
        logger.warning("oauth_callback_missing_params")
    return HTMLResponse(oauth_service.render_callback_page(code, state))
