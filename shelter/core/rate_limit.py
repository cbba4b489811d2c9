"""Rate limiting configuration for the shelter API."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from shelter.core.config import settings

# memory:// is per-process; point RATE_LIMIT_STORAGE_URI at a shared
# backend (any `limits` storage URI) when running several workers.
DEFAULT_LIMITS = [] if settings.RATE_LIMIT_API <= 0 else [f"{settings.RATE_LIMIT_API}/minute"]

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    default_limits=DEFAULT_LIMITS,
    enabled=settings.RATE_LIMIT_API > 0,
)
