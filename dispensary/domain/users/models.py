from sqlalchemy import Column, String, DateTime
from datetime import datetime
import enum

from dispensary.infrastructure.database import Base
from dispensary.domain.mixins import UUIDPrimaryKeyMixin, SoftDeleteMixin, value_enum


class UserRole(str, enum.Enum):
    """Staff roles"""
    ADMIN = "admin"
    PHYSICIAN = "physician"
    PHARMACIST = "pharmacist"
    NURSE = "nurse"
    RECEPTIONIST = "receptionist"


class User(UUIDPrimaryKeyMixin, SoftDeleteMixin, Base):
    """Staff account"""
    __tablename__ = "users"

    username = Column(String(50), nullable=False, index=True)
    email = Column(String(255), nullable=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(value_enum(UserRole), nullable=False, default=UserRole.PHARMACIST)
    phone_number = Column(String(20), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def set_password(self, password: str):
        """Set password hash"""
        from dispensary.core.security import get_password_hash
        self.password_hash = get_password_hash(password)

    def verify_password(self, password: str) -> bool:
        from dispensary.core.security import verify_password
        return verify_password(password, self.password_hash)
