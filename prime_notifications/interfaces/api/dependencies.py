"""FastAPI dependency utilities."""

from collections.abc import Generator

from fastapi import Depends, HTTPException, Request, status
from fastapi.requests import HTTPConnection
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from prime_notifications.domain.entities import User
from prime_notifications.infrastructure.notifications import (
    NotificationEventPublisher,
    PushDeliveryAdapter,
    RealtimeGateway,
)
from prime_notifications.infrastructure.repositories import UserRepository
from prime_notifications.infrastructure.security import decode_access_token

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/token")


def _credentials_error(detail: str = "Invalid credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_db(request: Request) -> Generator[Session, None, None]:
    """Yield a session from the application's session factory and close it afterwards."""

    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def resolve_current_user(token: str, db: Session, *, secret_key: str | None = None) -> User:
    """Resolve the authenticated user for the provided token."""

    try:
        payload = decode_access_token(token, secret_key=secret_key)
    except ValueError as exc:
        raise _credentials_error() from exc

    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id:
        raise _credentials_error()

    user = UserRepository(db).get(user_id)
    if user is None:
        raise _credentials_error("User not found")
    return user


def get_current_user(
    request: Request,
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Return the authenticated user from the provided token."""

    return resolve_current_user(token, db, secret_key=request.app.state.settings.secret_key)


def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    """Ensure the authenticated user is active."""

    if not current_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Inactive user",
        )
    return current_user


def get_publisher(request: Request) -> NotificationEventPublisher:
    return request.app.state.publisher


def get_push_adapter(request: Request) -> PushDeliveryAdapter:
    return request.app.state.push_adapter


def get_gateway(connection: HTTPConnection) -> RealtimeGateway:
    """Return the gateway for both HTTP requests and websocket handshakes."""

    return connection.app.state.gateway
