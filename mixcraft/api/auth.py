"""MIXCRAFT authentication — signed identity for the progress API.

Progress is stored per user; the JWT ``sub`` claim is the key. Login
checks the configured account (MIXCRAFT_AUTH_USERNAME /
MIXCRAFT_AUTH_PASSWORD_HASH, a bcrypt hash); tokens for other identities
can be minted with :func:`create_token` by trusted tooling.

Generate a password hash:
    python -c "from passlib.hash import bcrypt; print(bcrypt.hash('your-password'))"
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Annotated, Any

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from jose import JWTError, jwt
from passlib.hash import bcrypt  # type: ignore[import-untyped]
from pydantic import BaseModel

from mixcraft.config import settings

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")

_ALGORITHM = "HS256"
_TOKEN_EXPIRE_HOURS = 24 * 7


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"  # noqa: S105
    expires_in: int


class UserPayload(BaseModel):
    """Decoded identity."""

    username: str
    exp: datetime


def create_token(username: str, hours: float = _TOKEN_EXPIRE_HOURS) -> tuple[str, int]:
    """Signed JWT for ``username`` and its lifetime in seconds."""
    expires_delta = timedelta(hours=hours)
    payload: dict[str, Any] = {"sub": username, "exp": datetime.now(UTC) + expires_delta}
    token = jwt.encode(payload, settings.jwt_secret, algorithm=_ALGORITHM)
    return token, int(expires_delta.total_seconds())


def decode_token(token: str) -> UserPayload | None:
    """Identity in a token, or None when it is invalid or expired."""
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    username = payload.get("sub")
    if not username:
        return None
    return UserPayload(username=username, exp=datetime.fromtimestamp(payload["exp"], tz=UTC))


def authenticate_user(username: str, password: str) -> bool:
    if username != settings.auth_username or not settings.auth_password_hash:
        return False
    result: bool = bcrypt.verify(password, settings.auth_password_hash)  # type: ignore[no-untyped-call]
    return result


async def login(form: Annotated[OAuth2PasswordRequestForm, Depends()]) -> TokenResponse:
    """Exchange username/password for a bearer token."""
    if not authenticate_user(form.username, form.password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    token, expires_in = create_token(form.username)
    return TokenResponse(access_token=token, expires_in=expires_in)


async def get_current_user(token: str = Depends(oauth2_scheme)) -> UserPayload:
    """FastAPI dependency: the caller's identity, or 401."""
    user = decode_token(token)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


CurrentUser = Annotated[UserPayload, Depends(get_current_user)]
