"""Unit tests for shipping payloads and workflow helpers."""

from decimal import Decimal

import pytest

from trocas.exceptions import MissingAddress
from trocas.models import ReturnRequest, Store
from trocas.services.shipping import (
    ShippingQuote,
    build_cart_payload,
    build_quote_payload,
    digits_only,
    package_weight,
    resume_step,
)


@pytest.fixture
def shop():
    return Store(
        id="store-1",
        owner_id="owner-1",
        name="Loja Teste",
        slug="loja-teste",
        api_key="k",
        api_url="u",
        address_street="Rua das Flores",
        address_number="100",
        address_city="São Paulo",
        address_state="SP",
        address_postal_code="01310-100",
        phone="(11) 3333-4444",
        document="12.345.678/0001-90",
    )


@pytest.fixture
def request_for(shop):
    def _make(**overrides):
        values = {
            "id": "rr-1",
            "store_id": shop.id,
            "order_id": "987",
            "order_number": "1001",
            "customer_name": "Maria Silva",
            "customer_email": "maria@example.com",
            "customer_postal_code": "04567-000",
            "items": [
                {"id": "1", "name": "Camiseta", "price": 100.0, "quantity": 1},
                {"id": "2", "name": "Calça", "price": 50.0, "quantity": 2},
            ],
            "total_value": Decimal("200.00"),
            "resolution_type": "refund",
            "status": "approved",
        }
        values.update(overrides)
        return_request = ReturnRequest(**values)
        return_request.store = shop
        return return_request

    return _make


class TestHelpers:
    def test_digits_only(self):
        assert digits_only("01310-100") == "01310100"
        assert digits_only(None) == ""

    @pytest.mark.parametrize("count,weight", [(0, 0.3), (1, 0.5), (3, 1.5)])
    def test_package_weight(self, count, weight):
        assert package_weight(count) == pytest.approx(weight)

    def test_resume_step(self, request_for):
        assert resume_step(request_for()) == "quotes"
        assert resume_step(request_for(shipping_id="ship-1")) == "confirm"
        assert resume_step(request_for(shipping_id="ship-1", label_url="https://l")) == "done"

    def test_quote_from_carrier(self):
        quote = ShippingQuote.from_carrier(
            {
                "id": 1,
                "name": "PAC",
                "price": "23.50",
                "discount": "4.10",
                "delivery_time": 7,
                "delivery_range": {"min": 6, "max": 8},
                "company": {"id": 1, "name": "Correios"},
            }
        )

        assert quote.company == "Correios"
        assert quote.price == 23.5
        assert quote.discount == 4.1
        assert (quote.delivery_min, quote.delivery_max) == (6, 8)


class TestQuotePayload:
    def test_payload(self, request_for, shop):
        payload = build_quote_payload(request_for(), shop)

        assert payload["from"] == {"postal_code": "01310100"}
        assert payload["to"] == {"postal_code": "04567000"}
        product = payload["products"][0]
        assert product["weight"] == pytest.approx(1.5)
        assert (product["width"], product["height"], product["length"]) == (20, 15, 30)
        assert product["insurance_value"] == 200.0

    def test_store_without_address(self, request_for, shop):
        shop.address_postal_code = None

        with pytest.raises(MissingAddress):
            build_quote_payload(request_for(), shop)

    def test_customer_without_postal_code(self, request_for, shop):
        with pytest.raises(MissingAddress):
            build_quote_payload(request_for(customer_postal_code=None), shop)


class TestCartPayload:
    def test_reverse_shipment(self, request_for, shop):
        payload = build_cart_payload(request_for(customer_phone="(21) 98888-7777"), shop, 2)

        assert payload["service"] == 2
        assert payload["from"]["name"] == "Maria Silva"
        assert payload["from"]["phone"] == "21988887777"
        assert payload["from"]["number"] == "S/N"
        assert payload["to"]["name"] == "Loja Teste"
        assert payload["to"]["company_document"] == "12345678000190"
        assert payload["to"]["postal_code"] == "01310100"

        options = payload["options"]
        assert options["reverse"] is True
        assert options["non_commercial"] is True
        assert options["receipt"] is False
        assert options["own_hand"] is False
        assert options["tags"] == [{"tag": "1001", "url": None}]

        assert payload["products"] == [
            {"name": "Camiseta", "quantity": "1", "unitary_value": "100.0"},
            {"name": "Calça", "quantity": "2", "unitary_value": "50.0"},
        ]
        assert payload["volumes"][0]["weight"] == pytest.approx(1.5)

    def test_placeholder_phone(self, request_for, shop):
        payload = build_cart_payload(request_for(), shop, 2)

        assert payload["from"]["phone"] == "11999999999"
