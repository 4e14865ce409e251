"""API middleware."""

from trocas.api.middleware.auth import extract_bearer, require_merchant
from trocas.api.middleware.rate_limit import RateLimitMiddleware

__all__ = ["extract_bearer", "require_merchant", "RateLimitMiddleware"]
