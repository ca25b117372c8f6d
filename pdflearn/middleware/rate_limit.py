"""
Rate limiting using slowapi
"""
import os

from slowapi import Limiter
from slowapi.util import get_remote_address

RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "1") != "0"
UPLOAD_RATE_LIMIT = os.getenv("UPLOAD_RATE_LIMIT", "5/minute")
AUTH_RATE_LIMIT = os.getenv("AUTH_RATE_LIMIT", "20/minute")

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["1000/hour", "100/minute"],
    enabled=RATE_LIMIT_ENABLED,
)


def upload_limit():
    """Uploads call the completion API, so they get the tightest limit"""
    return limiter.limit(UPLOAD_RATE_LIMIT)


def auth_limit():
    """Rate limit for sign-in / registration"""
    return limiter.limit(AUTH_RATE_LIMIT)
