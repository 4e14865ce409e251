"""Return request model."""

from decimal import Decimal
from enum import StrEnum
from typing import Any

from sqlalchemy import ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from trocas.models.base import Base, JSONType, TimestampMixin, UUIDMixin


class ReturnStatus(StrEnum):
    """Return request status values."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


class ResolutionType(StrEnum):
    """Payout chosen by the customer."""

    REFUND = "refund"
    STORE_CREDIT = "store_credit"


class ReturnRequest(Base, UUIDMixin, TimestampMixin):
    """A customer return/exchange request for one order."""

    __tablename__ = "return_requests"

    # Store relationship
    store_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False),
        ForeignKey("stores.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    store = relationship("Store", lazy="selectin")

    # Source order
    order_id: Mapped[str] = mapped_column(String(100), nullable=False)
    order_number: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    # Customer
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_email: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_phone: Mapped[str | None] = mapped_column(String(50))
    customer_postal_code: Mapped[str | None] = mapped_column(String(20))
    customer_address: Mapped[str | None] = mapped_column(String(255))
    customer_address_number: Mapped[str | None] = mapped_column(String(50))
    customer_district: Mapped[str | None] = mapped_column(String(255))
    customer_city: Mapped[str | None] = mapped_column(String(255))
    customer_state: Mapped[str | None] = mapped_column(String(2))

    # Selected line items, in the order the customer picked them
    items: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)

    # Money
    total_value: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    credit_value: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    bonus_percent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Resolution
    resolution_type: Mapped[str] = mapped_column(String(20), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ReturnStatus.PENDING.value,
        index=True,
    )

    # Shipping
    shipping_provider: Mapped[str | None] = mapped_column(String(50))
    shipping_id: Mapped[str | None] = mapped_column(String(100))
    tracking_code: Mapped[str | None] = mapped_column(String(100))
    label_url: Mapped[str | None] = mapped_column(Text)
    shipping_cost: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))

    @property
    def item_count(self) -> int:
        return sum(int(item.get("quantity", 0)) for item in self.items)

    def __repr__(self) -> str:
        return f"<ReturnRequest #{self.order_number} ({self.status})>"
