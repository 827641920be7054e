"""SQLAlchemy Base model and common mixins.

This module provides:
- Base: Declarative base for all models
- UUIDPrimaryKeyMixin: UUID primary key for append-only and upserted rows

Timestamps on gateway tables are written by the application clock rather
than ``server_default=now()`` so cache freshness and token-bucket windows
are computed against one time source.

Usage:
    from jobscout.models.base import Base, UUIDPrimaryKeyMixin

    class MyModel(UUIDPrimaryKeyMixin, Base):
        __tablename__ = "my_table"
        name: Mapped[str]
"""

import uuid

from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models.

    All models should inherit from this class to be included in
    ``Database.create_all``.
    """

    pass


class UUIDPrimaryKeyMixin:
    """Mixin that adds a UUID primary key column."""

    @declared_attr
    def id(cls) -> Mapped[uuid.UUID]:
        return mapped_column(
            primary_key=True,
            default=uuid.uuid4,
            nullable=False,
        )
