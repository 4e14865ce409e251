"""Initial schema with stores, store settings, return requests and API keys.

Revision ID: 0001
Revises:
Create Date: 2026-10-19 12:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# Revision identifiers
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    """Create initial database schema."""

    # Stores table
    op.create_table(
        "stores",
        sa.Column("id", sa.Uuid(as_uuid=False), primary_key=True),
        sa.Column("owner_id", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(255), nullable=False),
        sa.Column("api_key", sa.Text, nullable=False),
        sa.Column("api_url", sa.String(500), nullable=False),
        sa.Column("nuvemshop_store_id", sa.String(100), nullable=True),
        sa.Column("address_street", sa.String(255), nullable=True),
        sa.Column("address_number", sa.String(50), nullable=True),
        sa.Column("address_complement", sa.String(255), nullable=True),
        sa.Column("address_district", sa.String(255), nullable=True),
        sa.Column("address_city", sa.String(255), nullable=True),
        sa.Column("address_state", sa.String(2), nullable=True),
        sa.Column("address_postal_code", sa.String(20), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("document", sa.String(50), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_stores_owner_id", "stores", ["owner_id"])
    op.create_index("ix_stores_slug", "stores", ["slug"], unique=True)
    op.create_index("ix_stores_nuvemshop_store_id", "stores", ["nuvemshop_store_id"])

    # Store settings (one row per store)
    op.create_table(
        "store_settings",
        sa.Column("id", sa.Uuid(as_uuid=False), primary_key=True),
        sa.Column(
            "store_id",
            sa.Uuid(as_uuid=False),
            sa.ForeignKey("stores.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("return_window_days", sa.Integer, nullable=False, server_default="7"),
        sa.Column("allow_refund", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("allow_store_credit", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("store_credit_bonus", sa.Integer, nullable=False, server_default="5"),
        sa.Column("requires_reason", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("allow_partial_returns", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("credit_format", sa.String(20), nullable=False, server_default="coupon"),
        *_timestamps(),
    )

    # Return requests
    op.create_table(
        "return_requests",
        sa.Column("id", sa.Uuid(as_uuid=False), primary_key=True),
        sa.Column(
            "store_id",
            sa.Uuid(as_uuid=False),
            sa.ForeignKey("stores.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("order_id", sa.String(100), nullable=False),
        sa.Column("order_number", sa.String(100), nullable=False),
        sa.Column("customer_name", sa.String(255), nullable=False),
        sa.Column("customer_email", sa.String(255), nullable=False),
        sa.Column("customer_phone", sa.String(50), nullable=True),
        sa.Column("customer_postal_code", sa.String(20), nullable=True),
        sa.Column("customer_address", sa.String(255), nullable=True),
        sa.Column("customer_address_number", sa.String(50), nullable=True),
        sa.Column("customer_district", sa.String(255), nullable=True),
        sa.Column("customer_city", sa.String(255), nullable=True),
        sa.Column("customer_state", sa.String(2), nullable=True),
        sa.Column("items", postgresql.JSONB, nullable=False, server_default="[]"),
        sa.Column("total_value", sa.Numeric(10, 2), nullable=False),
        sa.Column("credit_value", sa.Numeric(10, 2), nullable=True),
        sa.Column("bonus_percent", sa.Integer, nullable=False, server_default="0"),
        sa.Column("resolution_type", sa.String(20), nullable=False),
        sa.Column("reason", sa.Text, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("shipping_provider", sa.String(50), nullable=True),
        sa.Column("shipping_id", sa.String(100), nullable=True),
        sa.Column("tracking_code", sa.String(100), nullable=True),
        sa.Column("label_url", sa.Text, nullable=True),
        sa.Column("shipping_cost", sa.Numeric(10, 2), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'completed')",
            name="ck_return_requests_status",
        ),
        sa.CheckConstraint(
            "resolution_type IN ('refund', 'store_credit')",
            name="ck_return_requests_resolution_type",
        ),
        *_timestamps(),
    )
    op.create_index("ix_return_requests_store_id", "return_requests", ["store_id"])
    op.create_index("ix_return_requests_order_number", "return_requests", ["order_number"])
    op.create_index("ix_return_requests_status", "return_requests", ["status"])

    # Merchant API keys
    op.create_table(
        "merchant_api_keys",
        sa.Column("id", sa.Uuid(as_uuid=False), primary_key=True),
        sa.Column("owner_id", sa.String(255), nullable=False),
        sa.Column("key_prefix", sa.String(20), nullable=False),
        sa.Column("key_hash", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_merchant_api_keys_owner_id", "merchant_api_keys", ["owner_id"])
    op.create_index("ix_merchant_api_keys_key_prefix", "merchant_api_keys", ["key_prefix"])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("merchant_api_keys")
    op.drop_table("return_requests")
    op.drop_table("store_settings")
    op.drop_table("stores")
