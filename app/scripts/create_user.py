"""
Create a user (e.g. the first admin). Roles cannot be set over HTTP, so admins
are provisioned here. Run from project root:
  python -m app.scripts.create_user EMAIL PASSWORD [role] [--name NAME] [--allowed]
Example:
  python -m app.scripts.create_user admin@example.com your-secure-password admin --allowed
"""
import argparse
import logging
import sys

from sqlalchemy.orm import Session

from app.core.database import SessionLocal
from app.core.security import EMAIL_MAX_LEN, PASSWORD_MIN_LEN, hash_password
from app.models.user import ROLES, ROLE_USER, User, normalize_email

logger = logging.getLogger(__name__)


def create_user(
    db: Session,
    email: str,
    password: str,
    role: str = ROLE_USER,
    name: str | None = None,
    is_allowed: bool = False,
) -> User:
    """Insert a user. Raises ValueError for invalid input or an existing email."""
    email = normalize_email(email)
    if not email or len(email) > EMAIL_MAX_LEN:
        raise ValueError("Invalid email.")
    if len(password) < PASSWORD_MIN_LEN:
        raise ValueError(f"Password must be at least {PASSWORD_MIN_LEN} characters.")
    if role not in ROLES:
        raise ValueError(f"Role must be one of: {', '.join(ROLES)}.")
    if db.query(User).filter(User.email == email).first() is not None:
        raise ValueError(f"User '{email}' already exists.")
    user = User(
        email=email,
        hashed_password=hash_password(password),
        name=(name or "").strip() or None,
        role=role,
        is_allowed=is_allowed,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    parser = argparse.ArgumentParser(description="Create a user (admins are only created this way).")
    parser.add_argument("email", help="Email (stored lower-cased)")
    parser.add_argument("password", help=f"Password (min {PASSWORD_MIN_LEN} chars)")
    parser.add_argument("role", nargs="?", default=ROLE_USER, choices=list(ROLES))
    parser.add_argument("--name", default=None, help="Display name")
    parser.add_argument(
        "--allowed",
        action="store_true",
        help="Approve the account immediately (admins still need this for proxy routes)",
    )
    args = parser.parse_args()

    db = SessionLocal()
    try:
        user = create_user(
            db,
            args.email,
            args.password,
            role=args.role,
            name=args.name,
            is_allowed=args.allowed,
        )
    except ValueError as e:
        print(str(e), file=sys.stderr)
        return 1
    finally:
        db.close()
    logger.info(
        "Created user '%s' with role '%s' (is_allowed=%s).",
        user.email,
        user.role,
        user.is_allowed,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
