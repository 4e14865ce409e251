"""Merchant authentication dependency."""

from typing import Optional

import structlog
from fastapi import Depends, Security
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession

from trocas.database import get_session
from trocas.exceptions import AuthenticationError
from trocas.services.auth import AuthService

logger = structlog.get_logger()

api_key_header = APIKeyHeader(name="Authorization", auto_error=False)


def extract_bearer(authorization: Optional[str]) -> Optional[str]:
    """Strip an optional ``Bearer`` scheme from the header value."""
    if not authorization:
        return None
    if authorization.startswith("Bearer "):
        return authorization[7:].strip()
    return authorization.strip()


async def require_merchant(
    authorization: Optional[str] = Security(api_key_header),
    session: AsyncSession = Depends(get_session),
) -> str:
    """
    Resolve the merchant owner id from ``Authorization: Bearer mk_live_...``.

    Raises:
        AuthenticationError: Missing, malformed, unknown or revoked key
    """
    api_key = extract_bearer(authorization)
    if not api_key:
        raise AuthenticationError("Chave de API ausente")

    if not api_key.startswith("mk_live_"):
        logger.warning("merchant_api_key_bad_format", key_prefix=api_key[:8])
        raise AuthenticationError("Formato de chave de API inválido")

    key_record = await AuthService().verify_api_key(session, api_key)
    if key_record is None:
        raise AuthenticationError("Chave de API inválida")

    return key_record.owner_id
