from sqlalchemy import Column, Boolean, DateTime, String, Enum
from datetime import datetime
import uuid


def gen_uuid():
    return str(uuid.uuid4())


class UUIDPrimaryKeyMixin:
    id = Column(String(36), primary_key=True, default=gen_uuid)


# Rows are flagged, never removed
class SoftDeleteMixin:
    is_deleted = Column(Boolean, nullable=False, default=False, index=True)


class TimestampMixin:
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


def value_enum(enum_cls):
    """Store an enum by its value as plain VARCHAR"""
    return Enum(enum_cls, values_callable=lambda e: [m.value for m in e], native_enum=False, length=32)
