"""Melhor Envio integration for reverse-logistics labels."""

from typing import Any, Optional

import httpx
import structlog

from trocas.config import settings
from trocas.exceptions import CarrierError, ConfigurationError

logger = structlog.get_logger()

PROVIDER_NAME = "melhor_envio"


class MelhorEnvioClient:
    """Client for the Melhor Envio shipment API."""

    def __init__(
        self,
        token: str,
        base_url: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": settings.app_user_agent,
        }
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
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

    async def _post(self, endpoint: str, payload: dict[str, Any], error_message: str) -> Any:
        """POST to the API; any non-2xx becomes a CarrierError with the raw body."""
        url = f"{self.base_url}/{endpoint}"

        try:
            response = await self.client.post(url, json=payload)
        except httpx.RequestError as e:
            logger.error("melhor_envio_request_error", url=url, error=str(e))
            raise CarrierError(f"{error_message}: {e}") from e

        if response.is_error:
            logger.error(
                "melhor_envio_api_error",
                status_code=response.status_code,
                url=url,
                response=response.text[:500],
            )
            raise CarrierError(
                f"{error_message}: {response.status_code}",
                upstream_status=response.status_code,
                raw_response=response.text,
            )

        try:
            return response.json()
        except ValueError as e:
            raise CarrierError(
                f"{error_message}: resposta inválida",
                upstream_status=response.status_code,
                raw_response=response.text,
            ) from e

    async def calculate(self, payload: dict[str, Any]) -> list[dict[str, Any]]:
        """Quote all services for a package."""
        data = await self._post("me/shipment/calculate", payload, "Erro ao calcular frete")
        return data if isinstance(data, list) else []

    async def add_to_cart(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Reserve a shipment; returns the cart entry with its ``id``."""
        return await self._post("me/cart", payload, "Erro ao criar etiqueta")

    async def checkout(self, shipment_id: str) -> dict[str, Any]:
        """Purchase the reserved shipment."""
        return await self._post(
            "me/shipment/checkout",
            {"orders": [shipment_id]},
            "Erro ao comprar etiqueta",
        )

    async def generate(self, shipment_id: str) -> dict[str, Any]:
        """Generate the label of a purchased shipment."""
        return await self._post(
            "me/shipment/generate",
            {"orders": [shipment_id]},
            "Erro ao gerar etiqueta",
        )

    async def print_url(self, shipment_id: str) -> str | None:
        """Public print URL of the generated label."""
        data = await self._post(
            "me/shipment/print",
            {"mode": "public", "orders": [shipment_id]},
            "Erro ao obter impressão",
        )
        return data.get("url") if isinstance(data, dict) else None

    async def tracking(self, shipment_id: str) -> dict[str, Any] | None:
        """Tracking entry for the shipment, keyed by shipment id in the response."""
        data = await self._post(
            "me/shipment/tracking",
            {"orders": [shipment_id]},
            "Erro ao buscar rastreio",
        )
        if not isinstance(data, dict):
            return None
        return data.get(shipment_id)


def get_carrier_client() -> MelhorEnvioClient:
    """Build the carrier client from settings."""
    if not settings.melhor_envio_token:
        logger.error("melhor_envio_token_missing")
        raise ConfigurationError("Token do Melhor Envio não configurado")

    return MelhorEnvioClient(settings.melhor_envio_token, settings.melhor_envio_base_url)
