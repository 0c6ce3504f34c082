"""API key check applied to every /api/v1 route."""
import hmac
from typing import Annotated

from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader

from .. import config


API_KEY_HEADER_NAME = "X-BULKTAG-API-KEY"

api_key_header = APIKeyHeader(name=API_KEY_HEADER_NAME, auto_error=False)


def key_matches(supplied: str | None, expected: str) -> bool:
    """Constant-time comparison of the supplied and configured keys."""
    if not supplied:
        return False
    return hmac.compare_digest(supplied.encode(), expected.encode())


async def require_api_key(
    api_key: Annotated[str | None, Security(api_key_header)] = None
) -> str:
    """Reject requests without the configured key.

    Raises:
        HTTPException: 401 when the header is absent or does not match
        RuntimeError: If the server has no key configured
    """
    if not key_matches(api_key, config.api_key()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "API-Key"},
        )

    return api_key
