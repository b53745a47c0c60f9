from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from dispensary.api.v1.prescriptions.schemas import (
    PrescriptionCreate,
    PrescriptionDetail,
    PendingPrescription,
    PendingListResponse,
)
from dispensary.domain.prescriptions.models import PrescriptionPriority
from dispensary.domain.prescriptions.service import PrescriptionService
from dispensary.infrastructure.database import get_db

router = APIRouter(tags=["Prescriptions"])


@router.post("/physician/prescriptions", response_model=PrescriptionDetail, status_code=status.HTTP_201_CREATED)
async def create_prescription(
    prescription_in: PrescriptionCreate,
    db: AsyncSession = Depends(get_db)
):
    """Write a prescription for the pharmacy queue"""
    prescription = await PrescriptionService(db).create_prescription(
        prescription_in.model_dump(exclude={"items"}),
        [item.model_dump() for item in prescription_in.items]
    )
    return PrescriptionDetail.from_prescription(prescription)


@router.get("/pharmacist/prescriptions/pending", response_model=PendingListResponse)
async def get_pending_prescriptions(
    db: AsyncSession = Depends(get_db),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    priority: Optional[str] = Query(None, pattern="^(all|emergency|urgent|normal)$"),
    search: Optional[str] = None
):
    """Pending prescriptions, most urgent and oldest first"""
    priority_filter = PrescriptionPriority(priority) if priority and priority != "all" else None

    result = await PrescriptionService(db).get_pending(
        page=page,
        limit=limit,
        priority=priority_filter,
        search=search
    )
    return PendingListResponse(
        prescriptions=[PendingPrescription.from_prescription(p) for p in result["prescriptions"]],
        pagination=result["pagination"],
        priority_counts=result["priority_counts"]
    )


@router.get("/pharmacist/prescriptions/{prescription_id}", response_model=PrescriptionDetail)
async def get_prescription(
    prescription_id: str,
    db: AsyncSession = Depends(get_db)
):
    prescription = await PrescriptionService(db).get_prescription(prescription_id)
    return PrescriptionDetail.from_prescription(prescription)
