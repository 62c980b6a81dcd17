"""Error codes and the structured `{"detail": {"code", "message"}}` error body."""

from fastapi import HTTPException, status

VALIDATION_ERROR = "VALIDATION_ERROR"
EMAIL_TAKEN = "EMAIL_TAKEN"
INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
UNAUTHORIZED = "UNAUTHORIZED"
INVALID_TOKEN = "INVALID_TOKEN"
USER_NOT_FOUND = "USER_NOT_FOUND"
ACCESS_DENIED = "ACCESS_DENIED"
ADMIN_REQUIRED = "ADMIN_REQUIRED"
SERVER_ERROR = "SERVER_ERROR"
AUTH_ERROR = "AUTH_ERROR"
BAD_GATEWAY = "BAD_GATEWAY"


def error_body(code: str, message: str) -> dict[str, dict[str, str]]:
    return {"detail": {"code": code, "message": message}}


def api_error(
    status_code: int,
    code: str,
    message: str,
    headers: dict[str, str] | None = None,
) -> HTTPException:
    """Build an HTTPException whose detail is {code, message}."""
    return HTTPException(
        status_code=status_code,
        detail={"code": code, "message": message},
        headers=headers,
    )


def unauthorized(code: str, message: str) -> HTTPException:
    """401 with the Bearer challenge header."""
    return api_error(
        status.HTTP_401_UNAUTHORIZED,
        code,
        message,
        headers={"WWW-Authenticate": "Bearer"},
    )


def validation_error(message: str) -> HTTPException:
    return api_error(status.HTTP_400_BAD_REQUEST, VALIDATION_ERROR, message)
