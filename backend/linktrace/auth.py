"""
Token authentication for the dashboard API.
The token is configured via ADMIN_TOKEN; an empty token disables the API.
"""

import secrets
from typing import Optional

from fastapi import Request, HTTPException

from .config import settings
from .logging_config import get_logger

logger = get_logger(__name__)


def extract_admin_token(request: Request) -> Optional[str]:
    """Read the token from X-Admin-Token or a Bearer Authorization header."""
    token = request.headers.get("X-Admin-Token")
    if token:
        return token.strip()

    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[7:].strip()

    return None


def is_valid_admin_token(token: Optional[str]) -> bool:
    expected = settings.ADMIN_TOKEN
    if not expected or not token:
        return False
    return secrets.compare_digest(token.encode(), expected.encode())


def require_admin(request: Request) -> None:
    """
    FastAPI dependency guarding dashboard endpoints.
    Raises HTTPException if no valid token is provided.
    """
    if not is_valid_admin_token(extract_admin_token(request)):
        logger.warning(f"Unauthorized dashboard access attempt from {request.client.host if request.client else 'unknown'}")
        raise HTTPException(
            status_code=401,
            detail="Valid admin token required. Provide X-Admin-Token header.",
            headers={"WWW-Authenticate": "Bearer"}
        )
