from pydantic import Field, field_validator
from typing import List, Optional
from datetime import datetime

from dispensary.api.v1.schemas import CamelModel


class PatientCreate(CamelModel):
    """Schema for registering a patient"""
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    matric_number: str = Field(..., min_length=1, max_length=50)
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[str] = Field(None, max_length=255)
    department: Optional[str] = Field(None, max_length=100)
    level: Optional[str] = Field(None, max_length=20)
    blood_group: Optional[str] = Field(None, max_length=5)
    genotype: Optional[str] = Field(None, max_length=5)
    allergies: Optional[str] = None
    profile_photo: Optional[str] = Field(None, max_length=512)

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        if v and '@' not in v:
            raise ValueError('Invalid email format')
        return v

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v):
        if v and not v.replace('+', '').replace('-', '').replace(' ', '').isdigit():
            raise ValueError('Phone number must contain only digits, +, -, and spaces')
        return v


class PatientResponse(PatientCreate):
    id: str
    created_at: datetime


class PatientListResponse(CamelModel):
    patients: List[PatientResponse]


class PhysicianCreate(CamelModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    specialization: Optional[str] = Field(None, max_length=100)
    qualification: Optional[str] = Field(None, max_length=100)


class PhysicianResponse(PhysicianCreate):
    id: str
    created_at: datetime
