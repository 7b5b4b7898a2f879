# Rate limiting - uses client IP address for the rate limit key.
# Turned off with RATE_LIMIT_ENABLED=false (the test suite does this).

from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import settings

limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)
