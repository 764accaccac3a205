# clinic_tools/models/base.py

import uuid
from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def utcnow():
    return datetime.now(timezone.utc)


def new_id():
    """Return a fresh opaque record identifier."""
    return str(uuid.uuid4())


class BaseModel(db.Model):
    """Abstract base with timestamps and dict serialization"""

    __abstract__ = True

    # Nullable so legacy rows imported without a timestamp can still be stored
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=True)

    def to_dict(self, exclude=()):
        """Serialize mapped columns into JSON-friendly values"""
        payload = {}
        for column in self.__table__.columns:
            if column.name in exclude:
                continue
            value = getattr(self, column.name)
            if isinstance(value, datetime):
                value = value.isoformat()
            elif hasattr(value, "value"):
                value = value.value
            payload[column.name] = value
        return payload
