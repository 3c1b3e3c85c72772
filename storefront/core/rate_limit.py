"""
Per-client rate limiting for credential and code endpoints.

Disabled unless ``RATE_LIMIT_ENABLED`` is set; see DESIGN.md.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from storefront.core.config import settings

# Keyed by client IP
limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)
