# appointly/api/auth.py
"""API key gate for the tenant dashboard routes."""
import secrets
from typing import Optional

from fastapi import Header, HTTPException

from appointly.core.config import settings
from appointly.core.errors import ErrorSeverity, log_error


def require_api_key(x_api_key: Optional[str] = Header(None, alias="X-API-Key")) -> str:
    """
    Require the X-API-Key header to match APP_API_KEY.
    With no key configured every dashboard request is refused.
    """
    expected = settings.APP_API_KEY or ""
    provided = x_api_key or ""
    if not expected or not secrets.compare_digest(provided.encode(), expected.encode()):
        log_error(
            Exception("API key validation failed"),
            {"endpoint": "dashboard", "has_key": bool(provided)},
            ErrorSeverity.MEDIUM,
        )
        raise HTTPException(status_code=401, detail="Invalid or missing API key")
    return provided
