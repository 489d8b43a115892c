"""Base models and mixins for database models"""

from sqlalchemy import Column, DateTime
from sqlalchemy.orm import DeclarativeBase, declared_attr
from datetime import datetime, timezone

def utcnow() -> datetime:
    """Timezone-aware current time used for all timestamps"""
    return datetime.now(timezone.utc)

# Create declarative base
class Base(DeclarativeBase):
    pass

class TimestampedModel:
    """Mixin for adding created_at and updated_at timestamps"""

    # Python-side defaults so the value is known right after flush;
    # the revenue ledger keys buckets on created_at.
    @declared_attr
    def created_at(cls):
        return Column(
            DateTime(timezone=True),
            nullable=False,
            default=utcnow,
            index=True
        )

    @declared_attr
    def updated_at(cls):
        return Column(
            DateTime(timezone=True),
            nullable=False,
            default=utcnow,
            onupdate=utcnow
        )

__all__ = [
    'Base',
    'TimestampedModel',
    'utcnow',
]
