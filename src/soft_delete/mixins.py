"""
Soft Delete Model Mixin

    class Widget(SoftDeleteMixin, Base):
        __tablename__ = "widgets"
        ...

Any model declaring a nullable ``deleted_at`` column is soft deletable; the mixin
is a shorthand for that declaration.
"""

from sqlalchemy import Column, DateTime
from sqlalchemy.orm import declared_attr


class SoftDeleteMixin:
    """Adds a nullable, indexed deleted_at timestamp"""

    @declared_attr
    def deleted_at(cls):
        return Column(DateTime(timezone=True), nullable=True, index=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None
