"""Resend transactional email integration."""

from typing import Any, Optional

import httpx
import structlog

from trocas.config import settings
from trocas.exceptions import ConfigurationError, UpstreamError

logger = structlog.get_logger()


class ResendClient:
    """Client for the Resend email API."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.resend.com",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
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

    async def send_email(
        self,
        to: list[str],
        subject: str,
        html: str,
        sender: str | None = None,
    ) -> dict[str, Any]:
        """
        Send one email.

        Args:
            to: Recipient addresses
            subject: Subject line
            html: HTML body
            sender: "Name <address>" sender, defaults to the configured one

        Returns:
            Resend response (contains the message ``id``)
        """
        url = f"{self.base_url}/emails"
        try:
            response = await self.client.post(
                url,
                json={
                    "from": sender or settings.notification_sender,
                    "to": to,
                    "subject": subject,
                    "html": html,
                },
            )
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                "resend_api_error",
                status_code=e.response.status_code,
                response=e.response.text[:500],
            )
            raise UpstreamError(
                f"Resend API error: {e.response.status_code}",
                upstream_status=e.response.status_code,
                raw_response=e.response.text,
            ) from e
        except httpx.RequestError as e:
            logger.error("resend_request_error", error=str(e))
            raise UpstreamError(f"Resend request failed: {e}") from e


def get_email_client() -> ResendClient:
    """Build the email client from settings."""
    if not settings.resend_api_key:
        raise ConfigurationError("RESEND_API_KEY não configurada")
    return ResendClient(settings.resend_api_key, settings.resend_api_url)
