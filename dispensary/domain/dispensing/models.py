from sqlalchemy import Column, String, Integer, Float, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from dispensary.infrastructure.database import Base
from dispensary.domain.mixins import UUIDPrimaryKeyMixin, value_enum


class TransactionType(str, enum.Enum):
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


class DrugDispensal(UUIDPrimaryKeyMixin, Base):
    """Receipt written once per dispensing run; never updated"""
    __tablename__ = "drug_dispensals"

    dispensal_no = Column(String(32), unique=True, nullable=False, index=True)
    prescription_id = Column(String(36), ForeignKey("prescriptions.id"), nullable=False, index=True)
    prescription_no = Column(String(32), nullable=False)
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False, index=True)
    dispensed_by = Column(String(36), nullable=True)
    total_amount = Column(Float, nullable=False, default=0.0)
    amount_paid = Column(Float, nullable=False, default=0.0)
    payment_method = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    prescription = relationship("Prescription")
    patient = relationship("Patient")
    items = relationship("DispensalItem", back_populates="dispensal")


class DispensalItem(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "dispensal_items"

    dispensal_id = Column(String(36), ForeignKey("drug_dispensals.id"), nullable=False, index=True)
    prescription_item_id = Column(String(36), ForeignKey("prescription_items.id"), nullable=False)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False)
    quantity = Column(Integer, nullable=False)

    dispensal = relationship("DrugDispensal", back_populates="items")
    product = relationship("Product")


class BalanceTransaction(UUIDPrimaryKeyMixin, Base):
    """Payment ledger entry; never updated"""
    __tablename__ = "balance_transactions"

    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False, index=True)
    prescription_id = Column(String(36), ForeignKey("prescriptions.id"), nullable=True, index=True)
    amount = Column(Float, nullable=False)
    type = Column(value_enum(TransactionType), nullable=False, default=TransactionType.DEBIT)
    payment_method = Column(String(50), nullable=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
