"""Request/response schemas for auth endpoints."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, StrictBool


class SignupRequest(BaseModel):
    """New account. Email and password are checked by the endpoint, not here."""

    name: str | None = Field(default=None, max_length=255, description="Display name")
    email: str | None = Field(default=None, description="Email (case-insensitive)")
    password: str | None = Field(default=None, description="Password (min 6 chars)")


class LoginRequest(BaseModel):
    """Credentials for login."""

    email: str | None = Field(default=None, description="Email (case-insensitive)")
    password: str | None = Field(default=None, description="Password")


class CurrentUser(BaseModel):
    """Authenticated user view attached to a request by get_current_user."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: str | None = None
    role: str
    is_allowed: bool

    @property
    def user_id(self) -> str:
        return str(self.id)


class UserProfile(BaseModel):
    """Public profile fields (no password hash)."""

    user_id: str
    email: str
    name: str | None = None
    role: str = "user"
    is_allowed: bool = False


class TokenResponse(UserProfile):
    """JWT access token plus the profile of the user it was issued to."""

    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")


class UserListItem(UserProfile):
    """User entry for admin list."""

    created_at: datetime | None = None


class AccessUpdateRequest(BaseModel):
    """Body of PATCH /auth/users/{user_id}/access."""

    is_allowed: StrictBool


class AccessUpdateResponse(BaseModel):
    user_id: str
    is_allowed: bool
