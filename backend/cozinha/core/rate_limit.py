"""Shared rate limiter instance for use across route files."""

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from cozinha.core.config import settings


def get_account_or_ip(request: Request) -> str:
    """Rate limit by account ID if authenticated, else by IP."""
    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer "):
        from cozinha.core.security import decode_access_token
        token = auth.split(" ", 1)[1]
        payload = decode_access_token(token)
        if payload and payload.get("sub"):
            return f"account:{payload['sub']}"
    return get_remote_address(request)


limiter = Limiter(key_func=get_account_or_ip, enabled=settings.rate_limit_enabled)
