"""Nuvemshop (Tiendanube) API integration."""

from typing import Any, Optional

import httpx
import structlog

from trocas.config import settings
from trocas.exceptions import UpstreamAuthError, UpstreamUnavailable

logger = structlog.get_logger()


def _raise_upstream(exc: httpx.HTTPStatusError, url: str) -> None:
    status = exc.response.status_code
    body = exc.response.text[:500]
    logger.error("nuvemshop_api_error", status_code=status, url=url, response=body)
    if status in (401, 403):
        raise UpstreamAuthError(
            f"Credenciais inválidas: {status}",
            upstream_status=status,
            raw_response=body,
        ) from exc
    raise UpstreamUnavailable(
        f"Erro na API da Nuvemshop: {status}",
        upstream_status=status,
        raw_response=body,
    ) from exc


class NuvemshopClient:
    """Client for the Nuvemshop REST API of one store."""

    def __init__(
        self,
        api_url: str,
        access_token: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize Nuvemshop client.

        Args:
            api_url: Store API root (e.g. "https://api.tiendanube.com/v1/123456")
            access_token: OAuth access token or private app key
            transport: Optional httpx transport, used by tests
        """
        self.base_url = api_url.rstrip("/")
        self.headers = {
            "Authentication": f"bearer {access_token}",
            "Content-Type": "application/json",
            "User-Agent": settings.app_user_agent,
        }
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=30.0,
                headers=self.headers,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        endpoint: str,
        **kwargs,
    ) -> Any:
        """Make an API request, mapping failures to upstream errors."""
        url = f"{self.base_url}/{endpoint}"

        try:
            response = await self.client.request(method, url, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            _raise_upstream(e, url)
        except httpx.RequestError as e:
            logger.error("nuvemshop_request_error", url=url, error=str(e))
            raise UpstreamUnavailable("Erro ao conectar com a Nuvemshop") from e
        except ValueError as e:
            logger.error("nuvemshop_invalid_response", url=url, error=str(e))
            raise UpstreamUnavailable("Resposta inválida da Nuvemshop") from e

    # === Store ===

    async def get_store(self) -> dict[str, Any]:
        """Fetch the store profile (also used to validate credentials)."""
        return await self._request("GET", "store")

    # === Orders ===

    async def search_orders(self, query: str) -> list[dict[str, Any]]:
        """
        Search orders with the free-text ``q`` filter.

        Nuvemshop matches the order number among other fields, so callers must
        still filter the candidates. A search without results answers 404
        ("Last page is 0"), which is returned as an empty list.
        """
        try:
            data = await self._request("GET", "orders", params={"q": query})
        except UpstreamUnavailable as e:
            if e.upstream_status != 404:
                raise
            logger.info("nuvemshop_order_search_empty", query=query)
            return []
        return data if isinstance(data, list) else []

    async def list_orders(self, per_page: int = 50) -> list[dict[str, Any]]:
        """List recent orders in any status."""
        data = await self._request(
            "GET",
            "orders",
            params={"per_page": per_page, "status": "any"},
        )
        return data if isinstance(data, list) else []


def localized_name(name: Any, fallback: str) -> str:
    """Pick the store name from Nuvemshop's per-language dict (pt, es, en)."""
    if isinstance(name, dict):
        for lang in ("pt", "es", "en"):
            if name.get(lang):
                return name[lang]
        return fallback
    return name or fallback


async def exchange_code_for_token(
    code: str,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict[str, Any]:
    """
    Exchange an OAuth authorization code for an access token.

    Returns:
        Token payload with ``access_token``, ``user_id`` (the Nuvemshop store id)
        and ``scope``
    """
    async with httpx.AsyncClient(timeout=30.0, transport=transport) as client:
        try:
            response = await client.post(
                settings.nuvemshop_token_url,
                json={
                    "client_id": settings.nuvemshop_client_id,
                    "client_secret": settings.nuvemshop_client_secret,
                    "grant_type": "authorization_code",
                    "code": code,
                },
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                "nuvemshop_token_exchange_failed",
                status_code=e.response.status_code,
                response=e.response.text[:500],
            )
            raise UpstreamAuthError(
                "Falha ao obter token de acesso",
                upstream_status=e.response.status_code,
                raw_response=e.response.text[:500],
            ) from e
        except httpx.RequestError as e:
            logger.error("nuvemshop_token_request_error", error=str(e))
            raise UpstreamUnavailable("Erro ao conectar com a Nuvemshop") from e

    if "access_token" not in data or "user_id" not in data:
        raise UpstreamAuthError("Falha ao obter token de acesso", raw_response=str(data)[:500])
    return data
