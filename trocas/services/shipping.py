"""Reverse-logistics shipping workflow on top of Melhor Envio.

The workflow runs in phases (quote, reserve, purchase, track). Each phase is one
merchant action and checkpoints its result on the return request, so the
dashboard can reopen it where it stopped (see :func:`resume_step`).
"""

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Callable

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from trocas.exceptions import CarrierError, ConflictError, MissingAddress, ValidationError
from trocas.integrations.melhor_envio import PROVIDER_NAME, MelhorEnvioClient, get_carrier_client
from trocas.models.return_request import ReturnRequest, ReturnStatus
from trocas.models.store import Store

logger = structlog.get_logger()

CarrierFactory = Callable[[], MelhorEnvioClient]

# Package heuristic: fixed box, 0.5 kg per unit, never below 0.3 kg
PACKAGE_WIDTH_CM = 20
PACKAGE_HEIGHT_CM = 15
PACKAGE_LENGTH_CM = 30
WEIGHT_PER_ITEM_KG = 0.5
MIN_WEIGHT_KG = 0.3

PLACEHOLDER_PHONE = "11999999999"
PLATFORM_TAG = "Trocas.app"

STEP_QUOTES = "quotes"
STEP_CONFIRM = "confirm"
STEP_DONE = "done"


def digits_only(value: str | None) -> str:
    return re.sub(r"\D", "", value or "")


def package_weight(item_count: int) -> float:
    return max(MIN_WEIGHT_KG, item_count * WEIGHT_PER_ITEM_KG)


def resume_step(return_request: ReturnRequest) -> str:
    """Step the shipping dialog should open at for this request."""
    if return_request.label_url:
        return STEP_DONE
    if return_request.shipping_id:
        return STEP_CONFIRM
    return STEP_QUOTES


def _money(value: Any) -> float | None:
    if value in (None, ""):
        return None
    try:
        return float(Decimal(str(value)))
    except (InvalidOperation, ValueError):
        return None


@dataclass(frozen=True)
class ShippingQuote:
    id: Any
    name: str
    company: str | None
    price: float | None
    discount: float | None
    delivery_time: int | None
    delivery_min: int | None
    delivery_max: int | None

    @classmethod
    def from_carrier(cls, raw: dict[str, Any]) -> "ShippingQuote":
        company = raw.get("company") or {}
        delivery_range = raw.get("delivery_range") or {}
        return cls(
            id=raw.get("id"),
            name=raw.get("name", ""),
            company=company.get("name") if isinstance(company, dict) else company,
            price=_money(raw.get("custom_price") or raw.get("price")),
            discount=_money(raw.get("discount")),
            delivery_time=raw.get("custom_delivery_time") or raw.get("delivery_time"),
            delivery_min=delivery_range.get("min"),
            delivery_max=delivery_range.get("max"),
        )


@dataclass(frozen=True)
class LabelPurchase:
    label_url: str | None
    tracking_code: str | None
    shipping_cost: float | None
    checkout: dict[str, Any]


@dataclass(frozen=True)
class TrackingInfo:
    tracking: dict[str, Any] | None
    tracking_code: str | None
    label_url: str | None


def build_quote_payload(return_request: ReturnRequest, store: Store) -> dict[str, Any]:
    """Quote request for one package going from the customer back to the store."""
    if not store.has_shipping_address:
        raise MissingAddress("Endereço da loja não configurado. Configure em Configurações.")
    if not return_request.customer_postal_code:
        raise MissingAddress("CEP do cliente não informado na solicitação.")

    return {
        "from": {"postal_code": digits_only(store.address_postal_code)},
        "to": {"postal_code": digits_only(return_request.customer_postal_code)},
        "products": [
            {
                "id": return_request.id,
                "width": PACKAGE_WIDTH_CM,
                "height": PACKAGE_HEIGHT_CM,
                "length": PACKAGE_LENGTH_CM,
                "weight": package_weight(return_request.item_count),
                "insurance_value": float(return_request.total_value),
                "quantity": 1,
            }
        ],
    }


def build_cart_payload(
    return_request: ReturnRequest,
    store: Store,
    service_id: int | str,
) -> dict[str, Any]:
    """
    Cart entry for a reverse shipment.

    The customer is the sender and the store the recipient. Returns travel as
    non-commercial, so no invoice is attached.
    """
    if not store.has_shipping_address:
        raise MissingAddress("Endereço da loja não configurado. Configure em Configurações.")
    if not return_request.customer_postal_code:
        raise MissingAddress("CEP do cliente não informado na solicitação.")

    return {
        "service": service_id,
        "from": {
            "name": return_request.customer_name,
            "phone": digits_only(return_request.customer_phone) or PLACEHOLDER_PHONE,
            "email": return_request.customer_email,
            "document": "",
            "address": return_request.customer_address or "Endereço não informado",
            "complement": "",
            "number": return_request.customer_address_number or "S/N",
            "district": return_request.customer_district or "Centro",
            "city": return_request.customer_city or "São Paulo",
            "state_abbr": return_request.customer_state or "SP",
            "postal_code": digits_only(return_request.customer_postal_code),
        },
        "to": {
            "name": store.name,
            "phone": digits_only(store.phone) or PLACEHOLDER_PHONE,
            "email": "contato@loja.com",
            "company_document": digits_only(store.document),
            "address": store.address_street or "",
            "complement": store.address_complement or "",
            "number": store.address_number or "",
            "district": store.address_district or "",
            "city": store.address_city or "",
            "state_abbr": store.address_state or "",
            "postal_code": digits_only(store.address_postal_code),
        },
        "products": [
            {
                "name": item.get("name", ""),
                "quantity": str(item.get("quantity", 1)),
                "unitary_value": str(item.get("price", 0)),
            }
            for item in return_request.items
        ],
        "volumes": [
            {
                "height": PACKAGE_HEIGHT_CM,
                "width": PACKAGE_WIDTH_CM,
                "length": PACKAGE_LENGTH_CM,
                "weight": package_weight(return_request.item_count),
            }
        ],
        "options": {
            "insurance_value": float(return_request.total_value),
            "receipt": False,
            "own_hand": False,
            "reverse": True,
            "non_commercial": True,
            "platform": PLATFORM_TAG,
            "tags": [{"tag": return_request.order_number, "url": None}],
        },
    }


class ShippingOrchestrator:
    """Runs shipping phases for one return request at a time."""

    def __init__(
        self,
        session: AsyncSession,
        client_factory: CarrierFactory | None = None,
    ):
        self.session = session
        self._client_factory = client_factory

    def _client(self) -> MelhorEnvioClient:
        return (self._client_factory or get_carrier_client)()

    async def calculate_quotes(self, return_request: ReturnRequest) -> list[ShippingQuote]:
        """Quote every carrier service; services answering with an error are dropped."""
        payload = build_quote_payload(return_request, return_request.store)

        client = self._client()
        try:
            raw_quotes = await client.calculate(payload)
        finally:
            await client.close()

        quotes = [ShippingQuote.from_carrier(q) for q in raw_quotes if not q.get("error")]
        logger.info(
            "shipping_quotes_calculated",
            return_request_id=return_request.id,
            received=len(raw_quotes),
            available=len(quotes),
        )
        return quotes

    async def create_label(self, return_request: ReturnRequest, service_id: int | str) -> str:
        """
        Reserve a shipment in the carrier cart and remember its id.

        Raises:
            ConflictError: Request not approved, or a shipment already exists
            MissingAddress: Store or customer address incomplete
            CarrierError: Cart rejected by the carrier
        """
        if return_request.status != ReturnStatus.APPROVED:
            raise ConflictError("A solicitação precisa estar aprovada para gerar etiqueta")
        if return_request.shipping_id:
            raise ConflictError("Etiqueta já criada para esta solicitação")

        payload = build_cart_payload(return_request, return_request.store, service_id)

        client = self._client()
        try:
            cart = await client.add_to_cart(payload)
        finally:
            await client.close()

        shipping_id = cart.get("id") if isinstance(cart, dict) else None
        if not shipping_id:
            raise CarrierError("Erro ao criar etiqueta: resposta sem id", raw_response=str(cart))

        return_request.shipping_id = str(shipping_id)
        return_request.shipping_provider = PROVIDER_NAME
        await self.session.commit()

        logger.info(
            "shipping_label_reserved",
            return_request_id=return_request.id,
            shipping_id=return_request.shipping_id,
            service_id=service_id,
        )
        return return_request.shipping_id

    async def checkout(self, return_request: ReturnRequest) -> LabelPurchase:
        """
        Purchase and generate the reserved label, then fetch its print URL and
        tracking data.

        Nothing is persisted unless checkout and generate both succeed. Print
        and tracking failures leave their fields empty.
        """
        if not return_request.shipping_id:
            raise ValidationError("Etiqueta não criada. Crie primeiro.")
        if return_request.label_url:
            raise ConflictError("Etiqueta já comprada para esta solicitação")

        shipment_id = return_request.shipping_id
        label_url: str | None = None
        tracking_code: str | None = None
        shipping_cost: float | None = None

        client = self._client()
        try:
            checkout_data = await client.checkout(shipment_id)
            await client.generate(shipment_id)

            try:
                label_url = await client.print_url(shipment_id)
            except CarrierError as e:
                logger.warning("shipping_print_failed", shipping_id=shipment_id, error=str(e))

            try:
                info = await client.tracking(shipment_id)
            except CarrierError as e:
                logger.warning("shipping_tracking_failed", shipping_id=shipment_id, error=str(e))
                info = None
        finally:
            await client.close()

        if info:
            tracking_code = info.get("tracking")
            shipping_cost = _money(info.get("price"))

        return_request.label_url = label_url
        return_request.tracking_code = tracking_code
        return_request.shipping_cost = (
            Decimal(str(shipping_cost)) if shipping_cost is not None else None
        )
        await self.session.commit()

        logger.info(
            "shipping_label_purchased",
            return_request_id=return_request.id,
            shipping_id=shipment_id,
            has_label=label_url is not None,
            tracking_code=tracking_code,
        )
        return LabelPurchase(
            label_url=label_url,
            tracking_code=tracking_code,
            shipping_cost=shipping_cost,
            checkout=checkout_data if isinstance(checkout_data, dict) else {},
        )

    async def refresh_tracking(self, return_request: ReturnRequest) -> TrackingInfo:
        """Ask the carrier for the current tracking state. Read-only."""
        if not return_request.shipping_id:
            raise ValidationError("Etiqueta não encontrada")

        client = self._client()
        try:
            tracking = await client.tracking(return_request.shipping_id)
        finally:
            await client.close()

        return TrackingInfo(
            tracking=tracking,
            tracking_code=return_request.tracking_code,
            label_url=return_request.label_url,
        )
