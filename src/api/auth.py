"""
Authentication for the admin API.
"""

import hmac
from datetime import datetime, timedelta, timezone
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from src.config import get_settings

# Security scheme
security = HTTPBearer()


class TokenData(BaseModel):
    """Data extracted from JWT token."""

    subject: str
    exp: datetime


class AuthenticatedOperator(BaseModel):
    """Authenticated operator context."""

    subject: str


def create_access_token(
    subject: str,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a JWT access token.

    Args:
        subject: The operator identifier.
        expires_delta: Optional custom expiration time.

    Returns:
        The encoded JWT token.
    """
    settings = get_settings()

    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.api_access_token_expire_minutes)

    now = datetime.now(timezone.utc)
    to_encode = {
        "sub": subject,
        "exp": now + expires_delta,
        "iat": now,
    }

    return jwt.encode(
        to_encode,
        settings.api_secret_key,
        algorithm=settings.api_algorithm,
    )


def decode_token(token: str) -> TokenData:
    """
    Decode and validate a JWT token.

    Args:
        token: The JWT token to decode.

    Returns:
        TokenData extracted from the token.

    Raises:
        HTTPException: If token is invalid or expired.
    """
    settings = get_settings()

    try:
        payload = jwt.decode(
            token,
            settings.api_secret_key,
            algorithms=[settings.api_algorithm],
        )
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )

    subject = payload.get("sub")
    if not subject:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: missing subject",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return TokenData(
        subject=subject,
        exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    )


async def get_current_operator(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> AuthenticatedOperator:
    """
    FastAPI dependency to get the current authenticated operator.

    Raises:
        HTTPException: If authentication fails.
    """
    token_data = decode_token(credentials.credentials)
    return AuthenticatedOperator(subject=token_data.subject)


# Type alias for dependency injection
CurrentOperator = Annotated[AuthenticatedOperator, Depends(get_current_operator)]


def validate_api_key(api_key: str, subject: str) -> bool:
    """
    Validate an API key for an operator.

    When ``api_admin_key`` is configured the key must match it; otherwise
    any non-empty key is accepted (development mode).

    Args:
        api_key: The API key to validate.
        subject: The operator identifier.

    Returns:
        True if the API key is valid.
    """
    if not api_key or not subject:
        return False

    expected = get_settings().api_admin_key
    if expected is None:
        return True
    return hmac.compare_digest(api_key, expected)
