from sqlalchemy import Column, String, Integer, Float, DateTime, ForeignKey, Text, Boolean, CheckConstraint, case
from sqlalchemy.orm import relationship
import enum

from dispensary.infrastructure.database import Base
from dispensary.domain.mixins import UUIDPrimaryKeyMixin, SoftDeleteMixin, TimestampMixin, value_enum


class PrescriptionStatus(str, enum.Enum):
    """Prescription lifecycle: pending -> partially_dispensed -> dispensed"""
    PENDING = "pending"
    PARTIALLY_DISPENSED = "partially_dispensed"
    DISPENSED = "dispensed"


class PrescriptionPriority(str, enum.Enum):
    """Queue priority, most urgent first"""
    EMERGENCY = "emergency"
    URGENT = "urgent"
    NORMAL = "normal"


PRIORITY_RANK = {
    PrescriptionPriority.EMERGENCY: 0,
    PrescriptionPriority.URGENT: 1,
    PrescriptionPriority.NORMAL: 2,
}

# States a dispensing run may start from
DISPENSABLE_STATUSES = (PrescriptionStatus.PENDING, PrescriptionStatus.PARTIALLY_DISPENSED)


class Prescription(UUIDPrimaryKeyMixin, SoftDeleteMixin, TimestampMixin, Base):
    """Physician order made of one or more drug line items"""
    __tablename__ = "prescriptions"

    prescription_no = Column(String(32), unique=True, nullable=False, index=True)
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False, index=True)
    physician_id = Column(String(36), ForeignKey("physicians.id"), nullable=False, index=True)

    diagnosis = Column(Text)
    instructions = Column(Text)
    priority = Column(value_enum(PrescriptionPriority), nullable=False, default=PrescriptionPriority.NORMAL)
    status = Column(value_enum(PrescriptionStatus), nullable=False, default=PrescriptionStatus.PENDING, index=True)

    total_cost = Column(Float, nullable=False, default=0.0)
    amount_paid = Column(Float, nullable=False, default=0.0)
    valid_until = Column(DateTime, nullable=True)

    dispensed_at = Column(DateTime, nullable=True, index=True)
    dispensed_by = Column(String(36), nullable=True)

    patient = relationship("Patient")
    physician = relationship("Physician")
    items = relationship(
        "PrescriptionItem",
        back_populates="prescription",
        cascade="all, delete-orphan",
        order_by="PrescriptionItem.position"
    )


def priority_rank_expression():
    """ORDER BY expression ranking emergency before urgent before normal"""
    return case(
        dict(PRIORITY_RANK),
        value=Prescription.priority,
        else_=len(PRIORITY_RANK)
    )


class PrescriptionItem(UUIDPrimaryKeyMixin, Base):
    """One drug line of a prescription"""
    __tablename__ = "prescription_items"
    __table_args__ = (
        CheckConstraint("quantity_prescribed > 0", name="ck_prescription_items_quantity_positive"),
        CheckConstraint(
            "quantity_dispensed >= 0 AND quantity_dispensed <= quantity_prescribed",
            name="ck_prescription_items_dispensed_within_prescribed"
        ),
    )

    prescription_id = Column(String(36), ForeignKey("prescriptions.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)

    dosage = Column(String(100))
    frequency = Column(String(100))
    duration = Column(String(100))
    route = Column(String(50))
    instructions = Column(Text)

    quantity_prescribed = Column(Integer, nullable=False)
    quantity_dispensed = Column(Integer, nullable=False, default=0)
    unit_price = Column(Float, nullable=False, default=0.0)
    total_price = Column(Float, nullable=False, default=0.0)

    is_dispensed = Column(Boolean, nullable=False, default=False)
    dispensed_at = Column(DateTime, nullable=True)
    dispensed_by = Column(String(36), nullable=True)

    prescription = relationship("Prescription", back_populates="items")
    product = relationship("Product")
