"""Authentication service for merchant API keys."""

import secrets

import bcrypt
import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trocas.models.api_key import MerchantAPIKey
from trocas.models.base import utcnow

logger = structlog.get_logger()

KEY_PREFIX = "mk_live"


class AuthService:
    """Handles merchant API key generation and verification."""

    @staticmethod
    def generate_api_key(prefix: str = KEY_PREFIX) -> tuple[str, str]:
        """
        Generate a new merchant API key.

        Returns:
            Tuple of (full_key, key_hash)
        """
        full_key = f"{prefix}_{secrets.token_urlsafe(32)}"
        key_hash = bcrypt.hashpw(full_key.encode(), bcrypt.gensalt()).decode()
        return full_key, key_hash

    @staticmethod
    def key_prefix(api_key: str) -> str | None:
        """``mk_live`` for ``mk_live_xxx``; None when the key is malformed."""
        parts = api_key.split("_")
        if len(parts) < 3:
            return None
        return f"{parts[0]}_{parts[1]}"

    async def verify_api_key(
        self,
        session: AsyncSession,
        api_key: str,
    ) -> MerchantAPIKey | None:
        """
        Verify a merchant API key.

        Returns:
            MerchantAPIKey if valid, None otherwise
        """
        prefix = self.key_prefix(api_key)
        if prefix is None:
            return None

        result = await session.execute(
            select(MerchantAPIKey).where(
                MerchantAPIKey.key_prefix == prefix,
                MerchantAPIKey.is_active,
            )
        )

        for key_record in result.scalars().all():
            if bcrypt.checkpw(api_key.encode(), key_record.key_hash.encode()):
                key_record.last_used_at = utcnow()
                await session.commit()

                logger.info(
                    "merchant_api_key_verified",
                    owner_id=key_record.owner_id,
                    key_name=key_record.name,
                )
                return key_record

        logger.warning("merchant_api_key_invalid", prefix=prefix)
        return None

    async def create_api_key(
        self,
        session: AsyncSession,
        owner_id: str,
        name: str,
        prefix: str = KEY_PREFIX,
    ) -> tuple[str, MerchantAPIKey]:
        """
        Create a new API key for a merchant.

        Returns:
            Tuple of (api_key, MerchantAPIKey record). The plain key is only
            available here.
        """
        api_key, key_hash = self.generate_api_key(prefix)

        record = MerchantAPIKey(
            owner_id=owner_id,
            key_prefix=prefix,
            key_hash=key_hash,
            name=name,
            is_active=True,
        )
        session.add(record)
        await session.commit()
        await session.refresh(record)

        logger.info("merchant_api_key_created", owner_id=owner_id, key_name=name)
        return api_key, record

    async def revoke_api_key(self, session: AsyncSession, key_id: str) -> bool:
        """
        Revoke an API key.

        Returns:
            True if revoked, False if not found
        """
        result = await session.execute(select(MerchantAPIKey).where(MerchantAPIKey.id == key_id))
        record = result.scalar_one_or_none()
        if record is None:
            return False

        record.is_active = False
        await session.commit()

        logger.info("merchant_api_key_revoked", key_id=key_id, owner_id=record.owner_id)
        return True
