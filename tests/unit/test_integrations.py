"""Unit tests for external integrations."""

import json

import httpx
import pytest

from trocas.exceptions import CarrierError, UpstreamAuthError, UpstreamError, UpstreamUnavailable
from trocas.integrations.melhor_envio import MelhorEnvioClient
from trocas.integrations.nuvemshop import NuvemshopClient, exchange_code_for_token, localized_name
from trocas.integrations.resend import ResendClient


def transport(handler):
    """MockTransport that records requests on ``transport.requests``."""
    requests = []

    def wrapped(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    mock = httpx.MockTransport(wrapped)
    mock.requests = requests
    return mock


class TestNuvemshopClient:
    """Tests for the Nuvemshop API client."""

    @pytest.mark.asyncio
    async def test_search_orders_sends_query_and_auth(self, sample_order):
        mock = transport(lambda request: httpx.Response(200, json=[sample_order]))
        client = NuvemshopClient("https://api.tiendanube.com/v1/123", "tok", transport=mock)

        orders = await client.search_orders("1001")
        await client.close()

        assert orders == [sample_order]
        request = mock.requests[0]
        assert request.url.path == "/v1/123/orders"
        assert request.url.params["q"] == "1001"
        assert request.headers["Authentication"] == "bearer tok"
        assert request.headers["User-Agent"].startswith("Trocas.app")

    @pytest.mark.asyncio
    async def test_list_orders_params(self):
        mock = transport(lambda request: httpx.Response(200, json=[]))
        client = NuvemshopClient("https://api.tiendanube.com/v1/123", "tok", transport=mock)

        await client.list_orders()

        params = mock.requests[0].url.params
        assert params["per_page"] == "50"
        assert params["status"] == "any"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403])
    async def test_auth_failure(self, status):
        mock = transport(lambda request: httpx.Response(status, text="unauthorized"))
        client = NuvemshopClient("https://api.tiendanube.com/v1/123", "bad", transport=mock)

        with pytest.raises(UpstreamAuthError) as exc_info:
            await client.get_store()

        assert exc_info.value.upstream_status == status
        assert exc_info.value.message == f"Credenciais inválidas: {status}"

    @pytest.mark.asyncio
    async def test_server_error_is_unavailable(self):
        mock = transport(lambda request: httpx.Response(503, text="down"))
        client = NuvemshopClient("https://api.tiendanube.com/v1/123", "tok", transport=mock)

        with pytest.raises(UpstreamUnavailable):
            await client.search_orders("1")

    @pytest.mark.asyncio
    async def test_search_without_results_is_empty(self):
        mock = transport(lambda request: httpx.Response(404, json={"description": "Last page is 0"}))
        client = NuvemshopClient("https://api.tiendanube.com/v1/123", "tok", transport=mock)

        assert await client.search_orders("9999") == []

    @pytest.mark.asyncio
    async def test_missing_store_is_not_an_empty_search(self):
        mock = transport(lambda request: httpx.Response(404, json={"description": "Not Found"}))
        client = NuvemshopClient("https://api.tiendanube.com/v1/123", "tok", transport=mock)

        with pytest.raises(UpstreamUnavailable) as exc_info:
            await client.get_store()

        assert exc_info.value.upstream_status == 404

    @pytest.mark.asyncio
    async def test_network_error_is_unavailable(self):
        def fail(request):
            raise httpx.ConnectError("boom", request=request)

        client = NuvemshopClient("https://api.tiendanube.com/v1/123", "tok", transport=transport(fail))

        with pytest.raises(UpstreamUnavailable):
            await client.search_orders("1")

    @pytest.mark.asyncio
    async def test_exchange_code_for_token(self):
        mock = transport(
            lambda request: httpx.Response(
                200, json={"access_token": "abc", "user_id": 123456, "scope": "read_orders"}
            )
        )

        data = await exchange_code_for_token("the-code", transport=mock)

        assert data["access_token"] == "abc"
        body = json.loads(mock.requests[0].content)
        assert body["code"] == "the-code"
        assert body["grant_type"] == "authorization_code"

    @pytest.mark.asyncio
    async def test_exchange_code_rejected(self):
        mock = transport(lambda request: httpx.Response(400, json={"error": "invalid_grant"}))

        with pytest.raises(UpstreamAuthError):
            await exchange_code_for_token("bad", transport=mock)

    @pytest.mark.asyncio
    async def test_exchange_code_missing_token(self):
        mock = transport(lambda request: httpx.Response(200, json={"error": "nope"}))

        with pytest.raises(UpstreamAuthError):
            await exchange_code_for_token("bad", transport=mock)

    def test_localized_name(self):
        assert localized_name({"pt": "Loja", "es": "Tienda"}, "x") == "Loja"
        assert localized_name({"pt": "", "es": "Tienda"}, "x") == "Tienda"
        assert localized_name({"en": "Shop"}, "x") == "Shop"
        assert localized_name({}, "fallback") == "fallback"
        assert localized_name("Plain", "x") == "Plain"


class TestMelhorEnvioClient:
    """Tests for the Melhor Envio client."""

    BASE = "https://sandbox.melhorenvio.com.br/api/v2"

    @pytest.mark.asyncio
    async def test_calculate(self):
        quotes = [{"id": 1, "name": "PAC", "price": "20.00"}]
        mock = transport(lambda request: httpx.Response(200, json=quotes))
        client = MelhorEnvioClient("me-token", self.BASE, transport=mock)

        result = await client.calculate({"from": {"postal_code": "01310100"}})

        assert result == quotes
        request = mock.requests[0]
        assert request.url.path == "/api/v2/me/shipment/calculate"
        assert request.headers["Authorization"] == "Bearer me-token"

    @pytest.mark.asyncio
    async def test_error_keeps_raw_response(self):
        mock = transport(lambda request: httpx.Response(422, text='{"message":"invalid service"}'))
        client = MelhorEnvioClient("me-token", self.BASE, transport=mock)

        with pytest.raises(CarrierError) as exc_info:
            await client.add_to_cart({"service": 99})

        error = exc_info.value
        assert error.upstream_status == 422
        assert "invalid service" in error.raw_response
        assert error.message == "Erro ao criar etiqueta: 422"

    def test_error_details_are_truncated(self):
        error = CarrierError("Erro ao criar etiqueta: 422", upstream_status=422, raw_response="x" * 2000)

        data = error.to_dict()

        assert data["code"] == "carrier_error"
        assert data["details"] == "x" * 500

    def test_error_without_body_has_no_details(self):
        assert "details" not in CarrierError("Erro ao criar etiqueta: timeout").to_dict()

    @pytest.mark.asyncio
    async def test_print_uses_public_mode(self):
        mock = transport(lambda request: httpx.Response(200, json={"url": "https://me/label.pdf"}))
        client = MelhorEnvioClient("me-token", self.BASE, transport=mock)

        url = await client.print_url("ship-1")

        assert url == "https://me/label.pdf"
        body = json.loads(mock.requests[0].content)
        assert body == {"mode": "public", "orders": ["ship-1"]}

    @pytest.mark.asyncio
    async def test_tracking_is_keyed_by_shipment(self):
        payload = {"ship-1": {"tracking": "BR123", "price": "22.50"}}
        mock = transport(lambda request: httpx.Response(200, json=payload))
        client = MelhorEnvioClient("me-token", self.BASE, transport=mock)

        info = await client.tracking("ship-1")

        assert info == {"tracking": "BR123", "price": "22.50"}

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        mock = transport(lambda request: httpx.Response(200, text="<html>"))
        client = MelhorEnvioClient("me-token", self.BASE, transport=mock)

        with pytest.raises(CarrierError):
            await client.checkout("ship-1")


class TestResendClient:
    @pytest.mark.asyncio
    async def test_send_email(self):
        mock = transport(lambda request: httpx.Response(200, json={"id": "email-1"}))
        client = ResendClient("re_key", transport=mock)

        result = await client.send_email(["a@example.com"], "Oi", "<p>Oi</p>")

        assert result == {"id": "email-1"}
        body = json.loads(mock.requests[0].content)
        assert body["to"] == ["a@example.com"]
        assert body["from"]
        assert mock.requests[0].headers["Authorization"] == "Bearer re_key"

    @pytest.mark.asyncio
    async def test_send_email_failure(self):
        mock = transport(lambda request: httpx.Response(500, text="oops"))
        client = ResendClient("re_key", transport=mock)

        with pytest.raises(UpstreamError) as exc_info:
            await client.send_email(["a@example.com"], "Oi", "<p>Oi</p>")

        assert exc_info.value.upstream_status == 500
