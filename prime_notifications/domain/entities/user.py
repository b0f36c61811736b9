"""Domain entity representing a marketplace user."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class User:
    """Subset of the user record required to route notifications."""

    id: str
    name: str
    email: str
    push_token: str | None = None
    is_active: bool = True
    created_at: datetime | None = None

    def has_push_token(self) -> bool:
        """Return ``True`` when a device push token is registered."""

        return bool(self.push_token and self.push_token.strip())


__all__ = ["User"]
