"""Merchant API key model."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from trocas.models.base import Base, TimestampMixin, UUIDMixin


class MerchantAPIKey(Base, UUIDMixin, TimestampMixin):
    """API key for merchant dashboard access."""

    __tablename__ = "merchant_api_keys"

    owner_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    # Key details
    key_prefix: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    key_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Status
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    def __repr__(self) -> str:
        return f"<MerchantAPIKey {self.name} ({self.key_prefix})>"
