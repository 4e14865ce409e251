"""Store and store settings models."""

from enum import StrEnum

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from trocas.models.base import Base, TimestampMixin, UUIDMixin


class CreditFormat(StrEnum):
    """How store credit is delivered to the customer."""

    COUPON = "coupon"
    NATIVE = "native"


class Store(Base, UUIDMixin, TimestampMixin):
    """A merchant storefront connected to Nuvemshop."""

    __tablename__ = "stores"

    # Owner (merchant account)
    owner_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    # Basic info
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)

    # Platform credentials
    api_key: Mapped[str] = mapped_column(Text, nullable=False)
    api_url: Mapped[str] = mapped_column(String(500), nullable=False)
    nuvemshop_store_id: Mapped[str | None] = mapped_column(String(100), index=True)

    # Address used as the destination of reverse shipments
    address_street: Mapped[str | None] = mapped_column(String(255))
    address_number: Mapped[str | None] = mapped_column(String(50))
    address_complement: Mapped[str | None] = mapped_column(String(255))
    address_district: Mapped[str | None] = mapped_column(String(255))
    address_city: Mapped[str | None] = mapped_column(String(255))
    address_state: Mapped[str | None] = mapped_column(String(2))
    address_postal_code: Mapped[str | None] = mapped_column(String(20))
    phone: Mapped[str | None] = mapped_column(String(50))
    document: Mapped[str | None] = mapped_column(String(50))

    # Relationships
    settings: Mapped["StoreSettings | None"] = relationship(
        "StoreSettings",
        back_populates="store",
        uselist=False,
        lazy="selectin",
        passive_deletes=True,
    )

    @property
    def has_shipping_address(self) -> bool:
        return bool(self.address_postal_code and self.address_city)

    def __repr__(self) -> str:
        return f"<Store {self.name} ({self.slug})>"


class StoreSettings(Base, UUIDMixin, TimestampMixin):
    """Return policy configured by the merchant."""

    __tablename__ = "store_settings"

    store_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False),
        ForeignKey("stores.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    store = relationship("Store", back_populates="settings")

    return_window_days: Mapped[int] = mapped_column(Integer, nullable=False, default=7)
    allow_refund: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    allow_store_credit: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    store_credit_bonus: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    requires_reason: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    allow_partial_returns: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    credit_format: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=CreditFormat.COUPON.value,
    )

    def __repr__(self) -> str:
        return f"<StoreSettings store={self.store_id} window={self.return_window_days}d>"
