from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from dispensary.core.exceptions import ConflictError, NotFoundError
from dispensary.domain.patients.models import Patient, Physician
from dispensary.domain.patients.repository import PatientRepository, PhysicianRepository

logger = logging.getLogger(__name__)


class PatientService:
    """Service layer for patient and physician registration"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.patient_repo = PatientRepository(db)
        self.physician_repo = PhysicianRepository(db)

    async def create_patient(self, patient_data: dict) -> Patient:
        existing = await self.patient_repo.get_by_matric_number(patient_data["matric_number"])
        if existing:
            raise ConflictError(
                message="Matric number already registered",
                details={"matric_number": patient_data["matric_number"]}
            )

        patient = await self.patient_repo.create(patient_data)
        logger.info(f"Registered patient {patient.id} ({patient.matric_number})")
        return patient

    async def get_patients(self, skip: int = 0, limit: int = 20, search: Optional[str] = None) -> List[Patient]:
        return await self.patient_repo.get_all(skip=skip, limit=limit, search=search)

    async def get_patient(self, patient_id: str) -> Patient:
        patient = await self.patient_repo.get_by_id(patient_id)
        if not patient:
            raise NotFoundError(message="Patient not found", details={"patient_id": patient_id})
        return patient

    async def create_physician(self, physician_data: dict) -> Physician:
        physician = await self.physician_repo.create(physician_data)
        logger.info(f"Registered physician {physician.id}")
        return physician

    async def get_physician(self, physician_id: str) -> Physician:
        physician = await self.physician_repo.get_by_id(physician_id)
        if not physician:
            raise NotFoundError(message="Physician not found", details={"physician_id": physician_id})
        return physician
