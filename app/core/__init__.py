"""Core app configuration, credential store session, security and error codes."""

from app.core.config import get_settings, settings
from app.core.database import get_db
from app.core.errors import api_error, error_body

__all__ = ["api_error", "error_body", "get_db", "get_settings", "settings"]
