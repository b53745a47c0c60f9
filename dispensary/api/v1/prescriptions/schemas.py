from pydantic import Field
from typing import List, Optional
from datetime import datetime

from dispensary.api.v1.schemas import CamelModel, PaginationMeta
from dispensary.domain.prescriptions.models import Prescription, PrescriptionItem, PrescriptionPriority, PrescriptionStatus


def _has_stock(item: PrescriptionItem) -> bool:
    return item.product.quantity >= item.quantity_prescribed


class PrescriptionItemCreate(CamelModel):
    product_id: str
    quantity_prescribed: int = Field(..., gt=0)
    dosage: Optional[str] = Field(None, max_length=100)
    frequency: Optional[str] = Field(None, max_length=100)
    duration: Optional[str] = Field(None, max_length=100)
    route: Optional[str] = Field(None, max_length=50)
    instructions: Optional[str] = None


class PrescriptionCreate(CamelModel):
    """Schema for writing a prescription"""
    patient_id: str
    physician_id: str
    diagnosis: Optional[str] = None
    instructions: Optional[str] = None
    priority: PrescriptionPriority = PrescriptionPriority.NORMAL
    valid_until: Optional[datetime] = None
    items: List[PrescriptionItemCreate]


# Pharmacy queue

class PendingPatient(CamelModel):
    id: str
    name: str
    matric_number: str
    phone: Optional[str] = None
    photo: Optional[str] = None


class PendingPhysician(CamelModel):
    name: str
    specialization: Optional[str] = None


class PendingItem(CamelModel):
    id: str
    drug_name: str
    quantity: int
    available: int
    has_stock: bool
    is_dispensed: bool
    unit_price: float
    total_price: float


class PendingPrescription(CamelModel):
    id: str
    prescription_no: str
    patient: PendingPatient
    physician: PendingPhysician
    diagnosis: Optional[str] = None
    priority: PrescriptionPriority
    status: PrescriptionStatus
    item_count: int
    total_cost: float
    created_at: datetime
    items: List[PendingItem]
    has_stock_issues: bool

    @classmethod
    def from_prescription(cls, prescription: Prescription) -> "PendingPrescription":
        items = [
            PendingItem(
                id=item.id,
                drug_name=item.product.name,
                quantity=item.quantity_prescribed,
                available=item.product.quantity,
                has_stock=_has_stock(item),
                is_dispensed=item.is_dispensed,
                unit_price=item.unit_price,
                total_price=item.total_price
            )
            for item in prescription.items
        ]
        return cls(
            id=prescription.id,
            prescription_no=prescription.prescription_no,
            patient=PendingPatient(
                id=prescription.patient.id,
                name=prescription.patient.full_name,
                matric_number=prescription.patient.matric_number,
                phone=prescription.patient.phone,
                photo=prescription.patient.profile_photo
            ),
            physician=PendingPhysician(
                name=prescription.physician.display_name,
                specialization=prescription.physician.specialization
            ),
            diagnosis=prescription.diagnosis,
            priority=prescription.priority,
            status=prescription.status,
            item_count=len(items),
            total_cost=prescription.total_cost,
            created_at=prescription.created_at,
            items=items,
            has_stock_issues=any(not item.has_stock for item in items if not item.is_dispensed)
        )


class PriorityCounts(CamelModel):
    all: int
    emergency: int
    urgent: int
    normal: int


class PendingListResponse(CamelModel):
    prescriptions: List[PendingPrescription]
    pagination: PaginationMeta
    priority_counts: PriorityCounts


# Detail

class PatientDetail(PendingPatient):
    email: Optional[str] = None
    department: Optional[str] = None
    level: Optional[str] = None
    blood_group: Optional[str] = None
    genotype: Optional[str] = None
    allergies: Optional[str] = None


class PhysicianDetail(PendingPhysician):
    id: str
    qualification: Optional[str] = None


class ItemProduct(CamelModel):
    id: str
    available_stock: int
    batch_number: Optional[str] = None
    expiry_date: Optional[datetime] = None
    dosage_form: Optional[str] = None
    strength: Optional[str] = None


class PrescriptionItemDetail(CamelModel):
    id: str
    drug_name: str
    generic_name: Optional[str] = None
    brand_name: Optional[str] = None
    dosage: Optional[str] = None
    frequency: Optional[str] = None
    duration: Optional[str] = None
    route: Optional[str] = None
    instructions: Optional[str] = None
    quantity_prescribed: int
    quantity_dispensed: int
    unit_price: float
    total_price: float
    is_dispensed: bool
    dispensed_at: Optional[datetime] = None
    product: ItemProduct
    has_stock: bool


class PrescriptionDetail(CamelModel):
    """Full prescription with per-item stock data"""
    id: str
    prescription_no: str
    patient: PatientDetail
    physician: PhysicianDetail
    diagnosis: Optional[str] = None
    instructions: Optional[str] = None
    priority: PrescriptionPriority
    status: PrescriptionStatus
    total_cost: float
    amount_paid: float
    created_at: datetime
    valid_until: Optional[datetime] = None
    dispensed_at: Optional[datetime] = None
    items: List[PrescriptionItemDetail]

    @classmethod
    def from_prescription(cls, prescription: Prescription) -> "PrescriptionDetail":
        patient = prescription.patient
        physician = prescription.physician
        return cls(
            id=prescription.id,
            prescription_no=prescription.prescription_no,
            patient=PatientDetail(
                id=patient.id,
                name=patient.full_name,
                matric_number=patient.matric_number,
                phone=patient.phone,
                photo=patient.profile_photo,
                email=patient.email,
                department=patient.department,
                level=patient.level,
                blood_group=patient.blood_group,
                genotype=patient.genotype,
                allergies=patient.allergies
            ),
            physician=PhysicianDetail(
                id=physician.id,
                name=physician.display_name,
                specialization=physician.specialization,
                qualification=physician.qualification
            ),
            diagnosis=prescription.diagnosis,
            instructions=prescription.instructions,
            priority=prescription.priority,
            status=prescription.status,
            total_cost=prescription.total_cost,
            amount_paid=prescription.amount_paid,
            created_at=prescription.created_at,
            valid_until=prescription.valid_until,
            dispensed_at=prescription.dispensed_at,
            items=[
                PrescriptionItemDetail(
                    id=item.id,
                    drug_name=item.product.name,
                    generic_name=item.product.generic_name,
                    brand_name=item.product.brand_name,
                    dosage=item.dosage,
                    frequency=item.frequency,
                    duration=item.duration,
                    route=item.route,
                    instructions=item.instructions,
                    quantity_prescribed=item.quantity_prescribed,
                    quantity_dispensed=item.quantity_dispensed,
                    unit_price=item.unit_price,
                    total_price=item.total_price,
                    is_dispensed=item.is_dispensed,
                    dispensed_at=item.dispensed_at,
                    product=ItemProduct(
                        id=item.product.id,
                        available_stock=item.product.quantity,
                        batch_number=item.product.batch_number,
                        expiry_date=item.product.expiry_date,
                        dosage_form=item.product.dosage_form,
                        strength=item.product.strength
                    ),
                    has_stock=_has_stock(item)
                )
                for item in prescription.items
            ]
        )
