"""SQLAlchemy model for the user table."""

from sqlalchemy import Boolean, Column, DateTime, String, func

from prime_notifications.infrastructure.database import Base


class UserModel(Base):
    """Database representation of a marketplace user."""

    __tablename__ = "user"

    id = Column(String(64), primary_key=True)
    name = Column(String(120), nullable=False)
    email = Column(String(120), nullable=False, index=True)
    push_token = Column(String(255), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
