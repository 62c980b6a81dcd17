"""Pydantic request/response schemas."""

from app.schemas.auth import (
    AccessUpdateRequest,
    AccessUpdateResponse,
    CurrentUser,
    LoginRequest,
    SignupRequest,
    TokenResponse,
    UserListItem,
    UserProfile,
)
from app.schemas.health import HealthResponse

__all__ = [
    "AccessUpdateRequest",
    "AccessUpdateResponse",
    "CurrentUser",
    "HealthResponse",
    "LoginRequest",
    "SignupRequest",
    "TokenResponse",
    "UserListItem",
    "UserProfile",
]
