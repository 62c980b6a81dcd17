"""SQLAlchemy declarative Base shared by the credential store models and alembic."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass
