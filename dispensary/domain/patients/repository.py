from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_

from dispensary.domain.patients.models import Patient, Physician


class PatientRepository:
    """Repository for patient data access operations"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, patient_data: dict) -> Patient:
        """Create a new patient"""
        patient = Patient(**patient_data)
        self.db.add(patient)
        await self.db.commit()
        await self.db.refresh(patient)
        return patient

    async def get_by_id(self, patient_id: str) -> Optional[Patient]:
        result = await self.db.execute(
            select(Patient).where(Patient.id == patient_id, Patient.is_deleted.is_(False))
        )
        return result.scalar_one_or_none()

    async def get_by_matric_number(self, matric_number: str) -> Optional[Patient]:
        result = await self.db.execute(
            select(Patient).where(Patient.matric_number == matric_number)
        )
        return result.scalar_one_or_none()

    async def get_all(self, skip: int = 0, limit: int = 20, search: Optional[str] = None) -> List[Patient]:
        """Get patients with optional name / matric number search"""
        query = select(Patient).where(Patient.is_deleted.is_(False))

        if search:
            query = query.where(or_(
                Patient.first_name.ilike(f"%{search}%"),
                Patient.last_name.ilike(f"%{search}%"),
                Patient.matric_number.ilike(f"%{search}%")
            ))

        query = query.order_by(Patient.created_at.desc()).offset(skip).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())


class PhysicianRepository:
    """Repository for physician data access operations"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, physician_data: dict) -> Physician:
        physician = Physician(**physician_data)
        self.db.add(physician)
        await self.db.commit()
        await self.db.refresh(physician)
        return physician

    async def get_by_id(self, physician_id: str) -> Optional[Physician]:
        result = await self.db.execute(
            select(Physician).where(Physician.id == physician_id, Physician.is_deleted.is_(False))
        )
        return result.scalar_one_or_none()
