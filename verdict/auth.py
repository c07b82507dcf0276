"""JWT bearer authentication. The token subject is the account id."""

from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt
import structlog
from fastapi import HTTPException, Request, status

from verdict.config import Settings

ACCESS_TOKEN_EXPIRE_MINUTES = 60


def create_access_token(
    account_id: UUID | str,
    settings: Settings,
    expires_in: timedelta = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
) -> str:
    """Create a signed access token for an account."""
    expire = datetime.now(timezone.utc) + expires_in
    payload = {"sub": str(account_id), "exp": expire, "type": "access"}
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_jwt(token: str, settings: Settings) -> dict:
    """Decode and validate a JWT token. Raises HTTPException on failure."""
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")


async def get_current_account(request: Request) -> UUID:
    """
    FastAPI dependency: extract and validate the Bearer token.

    Returns the caller's account id or raises 401.
    """
    settings: Settings = request.app.state.container.settings

    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid Authorization header",
        )

    token = auth_header.removeprefix("Bearer ").strip()
    claims = decode_jwt(token, settings)
    if claims.get("type") != "access":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token type")

    try:
        account_id = UUID(str(claims.get("sub")))
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token subject")

    structlog.contextvars.bind_contextvars(account_id=str(account_id))
    return account_id
