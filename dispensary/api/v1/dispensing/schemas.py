from pydantic import Field
from typing import List, Optional

from dispensary.api.v1.schemas import CamelModel
from dispensary.domain.prescriptions.models import PrescriptionStatus


class DispensedItem(CamelModel):
    item_id: str
    quantity_dispensed: int
    product_id: Optional[str] = None


class DispenseRequest(CamelModel):
    """Items handed over in one dispensing run, and the payment taken"""
    dispensed_items: List[DispensedItem]
    total_amount: float = Field(0.0, ge=0)
    amount_paid: float = Field(0.0, ge=0)
    payment_method: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = None
    dispensed_by: Optional[str] = None


class DispenseResult(CamelModel):
    dispensal_no: str
    prescription_no: str
    patient_name: str
    status: PrescriptionStatus
    total_amount: float
    amount_paid: float
    change: float


class DispenseResponse(CamelModel):
    success: bool = True
    message: str = "Prescription dispensed successfully"
    data: DispenseResult
