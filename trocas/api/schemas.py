"""API request/response schemas.

Bodies use camelCase on the wire; models accept both camelCase and snake_case.
Money leaves the API as JSON numbers.
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Literal, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _to_float(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    return value


def _to_str(value: Any) -> Any:
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


Money = Annotated[float, BeforeValidator(_to_float)]
Identifier = Annotated[str, BeforeValidator(_to_str)]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# === Portal ===


class OrderLookupRequest(CamelModel):
    """Customer identifies an order in the portal."""
    store_slug: str = Field(..., min_length=1)
    order_number: Identifier = Field(..., min_length=1)
    customer_email: str = Field(..., min_length=3, max_length=255)


class CustomerOut(CamelModel):
    name: str
    email: str


class OrderItemOut(CamelModel):
    id: str
    product_id: Optional[str] = None
    name: str
    price: Money
    quantity: int
    image: Optional[str] = None
    sku: Optional[str] = None


class OrderOut(CamelModel):
    id: str
    number: str
    customer: CustomerOut
    items: list[OrderItemOut] = []
    total: Money
    created_at: str
    status: Optional[str] = None


class EligibilityOut(CamelModel):
    is_eligible: bool
    days_since_order: int
    return_window_days: int
    message: str


class PortalSettingsOut(CamelModel):
    return_window_days: int
    allow_refund: bool
    allow_store_credit: bool
    store_credit_bonus: int
    requires_reason: bool
    allow_partial_returns: bool


class OrderLookupResponse(CamelModel):
    success: bool = True
    order: OrderOut
    eligibility: EligibilityOut
    settings: PortalSettingsOut
    store_id: str


class PortalStoreOut(CamelModel):
    id: str
    name: str
    slug: str


class PortalStoreResponse(CamelModel):
    success: bool = True
    store: PortalStoreOut
    settings: PortalSettingsOut


class SelectedItemIn(CamelModel):
    id: Identifier
    quantity: Optional[int] = None
    reason: Optional[str] = Field(None, max_length=1000)


class ReturnRequestCreate(CamelModel):
    """Portal submission of a return request."""
    order_number: Identifier = Field(..., min_length=1)
    customer_email: str = Field(..., min_length=3, max_length=255)
    resolution_type: Literal["refund", "store_credit"]
    items: list[SelectedItemIn]
    reason: Optional[str] = Field(None, max_length=2000)
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_postal_code: Optional[str] = None
    customer_address: Optional[str] = None
    customer_address_number: Optional[str] = None
    customer_district: Optional[str] = None
    customer_city: Optional[str] = None
    customer_state: Optional[str] = Field(None, max_length=2)


# === Return requests ===


class ReturnRequestItemOut(CamelModel):
    id: Identifier
    product_id: Optional[str] = None
    name: str
    price: Money
    quantity: int
    image: Optional[str] = None
    reason: Optional[str] = None


class ReturnRequestOut(CamelModel):
    id: str
    store_id: str
    order_id: str
    order_number: str
    customer_name: str
    customer_email: str
    customer_phone: Optional[str] = None
    customer_postal_code: Optional[str] = None
    customer_address: Optional[str] = None
    customer_address_number: Optional[str] = None
    customer_district: Optional[str] = None
    customer_city: Optional[str] = None
    customer_state: Optional[str] = None
    items: list[ReturnRequestItemOut] = []
    total_value: Money
    credit_value: Optional[Money] = None
    bonus_percent: int
    resolution_type: str
    reason: Optional[str] = None
    status: str
    shipping_provider: Optional[str] = None
    shipping_id: Optional[str] = None
    tracking_code: Optional[str] = None
    label_url: Optional[str] = None
    shipping_cost: Optional[Money] = None
    created_at: datetime
    updated_at: datetime


class ReturnRequestResponse(CamelModel):
    success: bool = True
    return_request: ReturnRequestOut


class StatusUpdateRequest(CamelModel):
    status: Literal["approved", "rejected", "completed"]


class DashboardMetricsOut(CamelModel):
    total_requests: int
    store_credit_conversion: int
    total_refunded_value: float
    retained_revenue: float
    bonus_cost: float
    pending_requests: int


# === Stores ===


class StoreSettingsOut(CamelModel):
    return_window_days: int
    allow_refund: bool
    allow_store_credit: bool
    store_credit_bonus: int
    requires_reason: bool
    allow_partial_returns: bool
    credit_format: str


class StoreOut(CamelModel):
    id: str
    name: str
    slug: str
    api_url: str
    nuvemshop_store_id: Optional[str] = None
    address_street: Optional[str] = None
    address_number: Optional[str] = None
    address_complement: Optional[str] = None
    address_district: Optional[str] = None
    address_city: Optional[str] = None
    address_state: Optional[str] = None
    address_postal_code: Optional[str] = None
    phone: Optional[str] = None
    document: Optional[str] = None
    has_shipping_address: bool
    settings: Optional[StoreSettingsOut] = None
    created_at: datetime


class StoreListResponse(CamelModel):
    success: bool = True
    stores: list[StoreOut]


class StoreResponse(CamelModel):
    success: bool = True
    store: StoreOut


class StoreSettingsResponse(CamelModel):
    success: bool = True
    settings: StoreSettingsOut


class StoreSettingsUpdate(CamelModel):
    """Partial settings update; ranges are checked by the store service."""
    return_window_days: Optional[int] = None
    allow_refund: Optional[bool] = None
    allow_store_credit: Optional[bool] = None
    store_credit_bonus: Optional[int] = None
    requires_reason: Optional[bool] = None
    allow_partial_returns: Optional[bool] = None
    credit_format: Optional[str] = None


class StoreAddressUpdate(CamelModel):
    street: Optional[str] = None
    number: Optional[str] = None
    complement: Optional[str] = None
    district: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = Field(None, max_length=2)
    postal_code: Optional[str] = None
    phone: Optional[str] = None
    document: Optional[str] = None

    def to_columns(self) -> dict[str, Any]:
        """Map to ``Store`` column names, keeping only fields that were sent."""
        data = self.model_dump(exclude_unset=True)
        columns = {}
        for key, value in data.items():
            column = key if key in ("phone", "document") else f"address_{key}"
            columns[column] = value
        return columns


# === Commerce ===


class CommerceRequest(CamelModel):
    action: Literal["validate", "list-orders"]
    api_key: Optional[str] = None
    api_url: Optional[str] = None
    store_id: Optional[str] = None


class StoreProfileOut(CamelModel):
    id: str
    name: str
    email: Optional[str] = None
    currency: Optional[str] = None


class OrderSummaryOut(CamelModel):
    id: str
    number: str
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    total: Money
    created_at: Optional[str] = None
    status: Optional[str] = None


# === OAuth ===


class OAuthRequest(CamelModel):
    action: Literal["get-install-url", "exchange-token"]
    store_name: Optional[str] = None
    code: Optional[str] = None
    state: Optional[str] = None


# === Shipping ===


class ShippingRequest(CamelModel):
    action: Literal["calculate", "create-label", "checkout", "tracking", "status"]
    return_request_id: str
    service_id: Optional[int | str] = None


class DeliveryRangeOut(CamelModel):
    min: Optional[int] = None
    max: Optional[int] = None


class ShippingQuoteOut(CamelModel):
    id: Any
    name: str
    company: Optional[str] = None
    price: Optional[float] = None
    discount: Optional[float] = None
    delivery_time: Optional[int] = None
    delivery_range: DeliveryRangeOut
