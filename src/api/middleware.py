"""Rate limiting configuration using slowapi."""

import hashlib

from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from src.config import settings


def get_token_or_ip(request: Request) -> str:
    """Rate limit per bearer token if present, otherwise per client IP.

    Campus networks put many students behind one address, so the token is
    the better key.  Only a digest of it is kept in the limiter storage.
    """
    auth = request.headers.get("Authorization")
    if auth:
        return f"token:{hashlib.sha256(auth.encode()).hexdigest()[:32]}"
    return f"ip:{get_remote_address(request)}"


limiter = Limiter(key_func=get_token_or_ip, enabled=settings.rate_limit_enabled)
