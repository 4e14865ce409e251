"""Database models."""

from trocas.models.api_key import MerchantAPIKey
from trocas.models.base import Base
from trocas.models.return_request import ResolutionType, ReturnRequest, ReturnStatus
from trocas.models.store import CreditFormat, Store, StoreSettings

__all__ = [
    "Base",
    "Store",
    "StoreSettings",
    "CreditFormat",
    "ReturnRequest",
    "ReturnStatus",
    "ResolutionType",
    "MerchantAPIKey",
]
