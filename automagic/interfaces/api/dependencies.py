# automagic/interfaces/api/dependencies.py
"""FastAPI dependencies: API key check, rate limiting and use cases."""

import secrets
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import APIKeyHeader
from slowapi import Limiter
from slowapi.util import get_remote_address

from automagic.config import settings
from automagic.core.messages.repository import get_repository
from automagic.core.messages.use_cases import MessageUseCases

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

limiter = Limiter(key_func=get_remote_address)


def verify_api_key(api_key: Annotated[str | None, Depends(api_key_header)]) -> str:
    """Check the X-API-Key header against the configured key.

    No key configured means the API is open (it binds to localhost by
    default).

    Raises:
        HTTPException: 401 if the header is missing, 403 if it is wrong.
    """
    expected = settings.api_auth_key
    if not expected:
        return "auth_disabled"

    if not api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing API key. Include X-API-Key header.",
        )
    if not secrets.compare_digest(api_key, expected):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid API key.")
    return api_key


def get_rate_limit_string() -> str:
    return f"{settings.api_rate_limit}/minute"


def get_use_cases() -> MessageUseCases:
    """Build the message use cases on top of the shared repository."""
    return MessageUseCases(get_repository())


ApiKey = Annotated[str, Depends(verify_api_key)]
UseCases = Annotated[MessageUseCases, Depends(get_use_cases)]
