"""Signup, login, admin approval and the auth dependencies (get_current_user, require_allowed, require_admin)."""

import logging
from typing import Annotated

import jwt
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core import errors
from app.core.database import get_db
from app.core.errors import api_error, unauthorized, validation_error
from app.core.security import (
    EMAIL_MAX_LEN,
    PASSWORD_MIN_LEN,
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)
from app.models.user import (
    ROLE_ADMIN,
    ROLE_USER,
    User,
    normalize_email,
    parse_user_id,
)
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

logger = logging.getLogger(__name__)
router = APIRouter()
security = HTTPBearer(auto_error=False)

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"


def _token_response(user: User) -> TokenResponse:
    token = create_access_token(sub=user.id, email=user.email)
    return TokenResponse(
        access_token=token,
        token_type="bearer",
        user_id=str(user.id),
        email=user.email,
        name=user.name,
        role=user.role or ROLE_USER,
        is_allowed=bool(user.is_allowed),
    )


def _store_unavailable(action: str, exc: Exception) -> HTTPException:
    logger.error("%s failed: credential store error", action, exc_info=exc)
    return api_error(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        errors.AUTH_ERROR,
        f"{action} failed.",
    )


def _server_error(action: str, exc: Exception) -> HTTPException:
    logger.error("%s failed", action, exc_info=exc)
    return api_error(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        errors.SERVER_ERROR,
        f"{action} failed.",
    )


def _email_taken() -> HTTPException:
    return api_error(
        status.HTTP_400_BAD_REQUEST,
        errors.EMAIL_TAKEN,
        "An account with this email already exists",
    )


@router.post("/signup", response_model=TokenResponse)
def signup(
    body: SignupRequest,
    db: Annotated[Session, Depends(get_db)],
) -> TokenResponse:
    """
    Create an account and return a JWT for it.

    New accounts have role 'user' and is_allowed=false until an admin approves them.
    """
    email = normalize_email(body.email)
    password = body.password or ""
    if not email or len(email) > EMAIL_MAX_LEN or len(password) < PASSWORD_MIN_LEN:
        raise validation_error(
            f"Email and password (min {PASSWORD_MIN_LEN}) required."
        )
    name = (body.name or "").strip() or None

    try:
        if db.query(User).filter(User.email == email).first() is not None:
            raise _email_taken()
        user = User(
            email=email,
            hashed_password=hash_password(password),
            name=name,
            role=ROLE_USER,
            is_allowed=False,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
    except IntegrityError:
        # Lost an insert race against another signup for the same email.
        db.rollback()
        raise _email_taken()
    except SQLAlchemyError as e:
        db.rollback()
        raise _store_unavailable("Signup", e) from e

    logger.info("User signed up", extra={"user_id": user.id})
    return _token_response(user)


@router.post("/login", response_model=TokenResponse)
def login(
    body: LoginRequest,
    db: Annotated[Session, Depends(get_db)],
) -> TokenResponse:
    """
    Authenticate with email and password; returns a JWT access token.
    Include the token in the Authorization header as: Bearer <access_token>
    """
    email = normalize_email(body.email)
    if not email or not body.password:
        raise validation_error("Email and password required.")

    try:
        user = db.query(User).filter(User.email == email).first()
    except SQLAlchemyError as e:
        raise _store_unavailable("Login", e) from e

    if user is None or not verify_password(body.password, user.hashed_password):
        logger.warning("Failed login attempt")
        raise api_error(
            status.HTTP_401_UNAUTHORIZED,
            errors.INVALID_CREDENTIALS,
            INVALID_CREDENTIALS_MESSAGE,
        )
    logger.info("User logged in", extra={"user_id": user.id})
    return _token_response(user)


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
) -> CurrentUser:
    """Dependency: require valid Bearer JWT and return the current user. Raises 401 if missing or invalid."""
    if credentials is None or not credentials.credentials:
        raise unauthorized(
            errors.UNAUTHORIZED, "Missing or invalid Authorization header"
        )
    try:
        payload = decode_access_token(credentials.credentials)
    except jwt.PyJWTError:
        raise unauthorized(errors.INVALID_TOKEN, "Invalid or expired token")
    user_id = parse_user_id(payload.get("sub"))
    if user_id is None:
        raise unauthorized(errors.INVALID_TOKEN, "Invalid or expired token")

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise unauthorized(errors.USER_NOT_FOUND, "User no longer exists")
    return CurrentUser.model_validate(user)


def require_allowed(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
) -> CurrentUser:
    """Dependency: require an authenticated user an admin has approved. Admins are not exempt."""
    if not current_user.is_allowed:
        raise api_error(
            status.HTTP_403_FORBIDDEN,
            errors.ACCESS_DENIED,
            "Ask admin for access.",
        )
    return current_user


def require_admin(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
) -> CurrentUser:
    """Dependency: require authenticated user with role 'admin'. Raises 403 for non-admin."""
    if current_user.role != ROLE_ADMIN:
        raise api_error(
            status.HTTP_403_FORBIDDEN,
            errors.ADMIN_REQUIRED,
            "Admin access required.",
        )
    return current_user


@router.get("/me", response_model=UserProfile)
def read_me(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
) -> UserProfile:
    """Return the caller's current profile (e.g. to pick up a fresh approval)."""
    return UserProfile(
        user_id=current_user.user_id,
        email=current_user.email,
        name=current_user.name,
        role=current_user.role,
        is_allowed=current_user.is_allowed,
    )


@router.get("/users", response_model=list[UserListItem])
def list_users(
    _admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> list[UserListItem]:
    """List all users, newest first (admin only)."""
    try:
        users = db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()
    except SQLAlchemyError as e:
        raise _server_error("List users", e) from e
    return [
        UserListItem(
            user_id=str(u.id),
            email=u.email,
            name=u.name,
            role=u.role or ROLE_USER,
            is_allowed=bool(u.is_allowed),
            created_at=u.created_at,
        )
        for u in users
    ]


@router.patch("/users/{user_id}/access", response_model=AccessUpdateResponse)
def set_user_access(
    user_id: str,
    body: AccessUpdateRequest,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> AccessUpdateResponse:
    """Grant or revoke a user's access to the proxied features (admin only). Idempotent."""
    not_found = api_error(
        status.HTTP_404_NOT_FOUND, errors.USER_NOT_FOUND, "User not found"
    )
    target_id = parse_user_id(user_id)
    if target_id is None:
        raise not_found

    try:
        user = db.query(User).filter(User.id == target_id).first()
        if user is None:
            raise not_found
        if user.is_allowed != body.is_allowed:
            user.is_allowed = body.is_allowed
            db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise _server_error("Set access", e) from e

    logger.info(
        "User access updated",
        extra={"user_id": target_id, "is_allowed": body.is_allowed, "admin_id": admin.id},
    )
    return AccessUpdateResponse(user_id=str(target_id), is_allowed=body.is_allowed)
