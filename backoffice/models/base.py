# models/base.py
from datetime import datetime, date
from decimal import Decimal
import enum
import uuid

from backoffice.extensions import db


def _serialize(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    return value


def enum_column(enum_cls, **kwargs):
    """String-backed column restricted to the members of ``enum_cls``."""
    return db.Column(
        db.Enum(enum_cls, native_enum=False, length=30, validate_strings=True,
                values_callable=lambda members: [m.value for m in members]),
        **kwargs
    )


class BaseModel(db.Model):
    """Base model class with common functionality."""

    __abstract__ = True

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    created_at = db.Column(db.DateTime, default=datetime.now, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now, nullable=False)

    def to_dict(self, include_relationships=False):
        """Convert model instance to a JSON-safe dictionary."""
        result = {}

        for column in self.__table__.columns:
            result[column.name] = _serialize(getattr(self, column.name))

        if include_relationships:
            for relationship in self.__mapper__.relationships:
                rel_value = getattr(self, relationship.key)
                if rel_value is None:
                    result[relationship.key] = None
                elif relationship.uselist:
                    result[relationship.key] = [item.to_dict() for item in rel_value]
                else:
                    result[relationship.key] = rel_value.to_dict()

        return result
