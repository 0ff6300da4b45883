# schoolhub/backend/api/utilities/limiter.py

from fastapi import Request
import jwt

from slowapi import Limiter
from slowapi.util import get_remote_address

from ...config.config import settings


def bearer_token(request: Request) -> str | None:
    """Returns the raw token of a 'Bearer ...' Authorization header, if any."""
    auth_header = request.headers.get("authorization")
    if auth_header and auth_header.lower().startswith("bearer "):
        return auth_header.split(" ", 1)[1].strip() or None
    return None


def get_limiter_key(request: Request) -> str:
    """
    Returns the rate limit key for a request.
    Signed-in callers are limited per account (the token's 'sub' claim),
    everyone else per client IP address.
    """
    token = bearer_token(request)
    if token:
        try:
            # The auth provider verifies the token; here only the subject is needed.
            payload = jwt.decode(token, options={"verify_signature": False, "verify_exp": False})
            subject = payload.get("sub")
            if subject:
                return str(subject)
        except jwt.PyJWTError:
            pass

    return get_remote_address(request)


# Redis-backed when RATE_LIMITER_REDIS_URL is set, in-memory otherwise.
limiter = Limiter(key_func=get_limiter_key, storage_uri=settings.RATE_LIMITER_REDIS_URL or "memory://")
