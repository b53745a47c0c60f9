from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from dispensary.api.v1.dispensing.schemas import DispenseRequest, DispenseResponse, DispenseResult
from dispensary.domain.dispensing.service import DispensingService
from dispensary.infrastructure.database import get_db

router = APIRouter(tags=["Dispensing"])


@router.post("/pharmacist/prescriptions/{prescription_id}/dispense", response_model=DispenseResponse)
async def dispense_prescription(
    prescription_id: str,
    request: DispenseRequest,
    db: AsyncSession = Depends(get_db)
):
    """Dispense items of a prescription and record the payment"""
    result = await DispensingService(db).dispense(
        prescription_id,
        [item.model_dump() for item in request.dispensed_items],
        total_amount=request.total_amount,
        amount_paid=request.amount_paid,
        payment_method=request.payment_method,
        notes=request.notes,
        dispensed_by=request.dispensed_by
    )
    return DispenseResponse(data=DispenseResult(
        dispensal_no=result["dispensal_no"],
        prescription_no=result["prescription_no"],
        patient_name=result["patient_name"],
        status=result["status"],
        total_amount=result["total_amount"],
        amount_paid=result["amount_paid"],
        change=result["change"]
    ))
