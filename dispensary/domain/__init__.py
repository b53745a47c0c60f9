# Importing the domain registers every table on Base.metadata
from dispensary.domain.inventory.models import Product, StockMovement, StockStatus, MovementType
from dispensary.domain.patients.models import Patient, Physician
from dispensary.domain.prescriptions.models import (
    Prescription,
    PrescriptionItem,
    PrescriptionPriority,
    PrescriptionStatus,
)
from dispensary.domain.dispensing.models import DrugDispensal, DispensalItem, BalanceTransaction, TransactionType
from dispensary.domain.users.models import User, UserRole

__all__ = [
    "Product",
    "StockMovement",
    "StockStatus",
    "MovementType",
    "Patient",
    "Physician",
    "Prescription",
    "PrescriptionItem",
    "PrescriptionPriority",
    "PrescriptionStatus",
    "DrugDispensal",
    "DispensalItem",
    "BalanceTransaction",
    "TransactionType",
    "User",
    "UserRole",
]
