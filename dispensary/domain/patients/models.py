from sqlalchemy import Column, String, DateTime, Text
from datetime import datetime

from dispensary.infrastructure.database import Base
from dispensary.domain.mixins import UUIDPrimaryKeyMixin, SoftDeleteMixin


class Patient(UUIDPrimaryKeyMixin, SoftDeleteMixin, Base):
    """Clinic patient a prescription is written for"""
    __tablename__ = "patients"

    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    matric_number = Column(String(50), unique=True, nullable=False, index=True)
    phone = Column(String(20))
    email = Column(String(255))
    department = Column(String(100))
    level = Column(String(20))
    blood_group = Column(String(5))
    genotype = Column(String(5))
    allergies = Column(Text)
    profile_photo = Column(String(512))
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Physician(UUIDPrimaryKeyMixin, SoftDeleteMixin, Base):
    """Prescribing physician"""
    __tablename__ = "physicians"

    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    specialization = Column(String(100))
    qualification = Column(String(100))
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    @property
    def display_name(self) -> str:
        return f"Dr. {self.first_name} {self.last_name}"
