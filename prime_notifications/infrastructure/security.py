"""Security helpers for bearer token generation and validation."""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from prime_notifications.config import get_settings

ALGORITHM = "HS256"


def create_access_token(
    data: dict,
    expires_delta: timedelta | None = None,
    *,
    secret_key: str | None = None,
) -> str:
    settings = get_settings()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    return jwt.encode(
        {**data, "exp": expire}, secret_key or settings.secret_key, algorithm=ALGORITHM
    )


def decode_access_token(token: str, *, secret_key: str | None = None) -> dict:
    try:
        return jwt.decode(token, secret_key or get_settings().secret_key, algorithms=[ALGORITHM])
    except JWTError as exc:
        raise ValueError("Could not validate credentials") from exc
