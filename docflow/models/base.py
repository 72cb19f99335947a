"""
Shared column helpers and the abstract base for UUID-keyed tables.

Every entity id is a UUID string so ids can be generated client-side
(diagram nodes) and server-side with the same shape.
"""

import uuid
from datetime import datetime, timezone

from docflow.models import db


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class UUIDModel(db.Model):
    """Abstract base: string UUID primary key plus created/updated stamps."""
    __abstract__ = True

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )
