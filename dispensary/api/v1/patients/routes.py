from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from dispensary.api.v1.patients.schemas import (
    PatientCreate,
    PatientResponse,
    PatientListResponse,
    PhysicianCreate,
    PhysicianResponse,
)
from dispensary.domain.patients.service import PatientService
from dispensary.infrastructure.database import get_db

router = APIRouter(tags=["Patients"])


@router.post("/patients", response_model=PatientResponse, status_code=status.HTTP_201_CREATED)
async def create_patient(
    patient_data: PatientCreate,
    db: AsyncSession = Depends(get_db)
):
    """Register a new patient"""
    patient = await PatientService(db).create_patient(patient_data.model_dump())
    return PatientResponse.model_validate(patient)


@router.get("/patients", response_model=PatientListResponse)
async def get_patients(
    db: AsyncSession = Depends(get_db),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = None
):
    patients = await PatientService(db).get_patients(skip=skip, limit=limit, search=search)
    return PatientListResponse(patients=[PatientResponse.model_validate(p) for p in patients])


@router.post("/physicians", response_model=PhysicianResponse, status_code=status.HTTP_201_CREATED)
async def create_physician(
    physician_data: PhysicianCreate,
    db: AsyncSession = Depends(get_db)
):
    physician = await PatientService(db).create_physician(physician_data.model_dump())
    return PhysicianResponse.model_validate(physician)
