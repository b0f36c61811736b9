"""Persistence layer for user data."""

from __future__ import annotations

from sqlalchemy.orm import Session

from prime_notifications.domain.entities import User
from prime_notifications.infrastructure.models import UserModel
from prime_notifications.utils import ensure_app_timezone


class UserRepository:
    """Look up the users notifications are addressed to."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, user_id: str) -> User | None:
        if not user_id:
            return None
        model = self.session.get(UserModel, str(user_id))
        return self._to_entity(model) if model else None

    def create(self, user: User) -> User:
        model = UserModel(
            id=str(user.id),
            name=user.name,
            email=user.email,
            push_token=user.push_token,
            is_active=user.is_active,
        )
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model)

    def update_push_token(self, user_id: str, push_token: str | None) -> User:
        model = self.session.get(UserModel, str(user_id))
        if model is None:
            msg = f"User with id {user_id} not found"
            raise ValueError(msg)
        model.push_token = push_token
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model)

    @staticmethod
    def _to_entity(model: UserModel) -> User:
        return User(
            id=model.id,
            name=model.name,
            email=model.email,
            push_token=model.push_token,
            is_active=bool(model.is_active),
            created_at=ensure_app_timezone(model.created_at),
        )


__all__ = ["UserRepository"]
