"""ORM model for application users (auth, approval and RBAC)."""

from datetime import UTC, datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, String, func
from sqlalchemy.orm import validates

from app.models.base import Base

ROLE_USER = "user"
ROLE_ADMIN = "admin"
ROLES = (ROLE_USER, ROLE_ADMIN)
# Largest id any supported store can hold (signed 64-bit).
MAX_USER_ID = 2**63 - 1


def normalize_email(email: str | None) -> str:
    """Trim and lower-case; emails compare case-insensitively."""
    return (email or "").strip().lower()


def parse_user_id(value: object) -> int | None:
    """Plain ASCII digits within the id range, else None."""
    if not isinstance(value, str) or not value.isascii() or not value.isdigit():
        return None
    user_id = int(value)
    if user_id > MAX_USER_ID:
        return None
    return user_id


class User(Base):
    """
    User account for JWT authentication and access gating.

    role: 'admin' or 'user'. Not changeable through the HTTP API.
    is_allowed: set by an admin; gates every proxied route.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    hashed_password = Column(String(255), nullable=False)
    name = Column(String(255), nullable=True)
    role = Column(String(32), nullable=False, default=ROLE_USER)
    is_allowed = Column(Boolean, nullable=False, default=False)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=func.now(),
    )

    @validates("email")
    def _lowercase_email(self, _key: str, value: str) -> str:
        return normalize_email(value)
