from typing import List, Optional
from datetime import datetime

from dispensary.api.v1.prescriptions.schemas import PendingPrescription
from dispensary.api.v1.schemas import CamelModel


class DashboardStatistics(CamelModel):
    pending_prescriptions: int
    dispensed_today: int
    revenue: float
    patients_served: int


class PriorityPrescription(CamelModel):
    id: str
    prescription_no: str
    patient_name: str
    matric_number: str
    physician: str
    diagnosis: Optional[str] = None
    priority: str
    item_count: int
    total_cost: float
    created_at: datetime
    has_stock_issues: bool

    @classmethod
    def from_pending(cls, pending: PendingPrescription) -> "PriorityPrescription":
        return cls(
            id=pending.id,
            prescription_no=pending.prescription_no,
            patient_name=pending.patient.name,
            matric_number=pending.patient.matric_number,
            physician=pending.physician.name,
            diagnosis=pending.diagnosis,
            priority=pending.priority.value,
            item_count=pending.item_count,
            total_cost=pending.total_cost,
            created_at=pending.created_at,
            has_stock_issues=pending.has_stock_issues
        )


class LowStockAlert(CamelModel):
    id: str
    name: str
    current: int
    reorder_level: int


class ExpiringAlert(CamelModel):
    id: str
    name: str
    expiry_date: datetime
    quantity: int


class InventoryAlerts(CamelModel):
    low_stock: List[LowStockAlert]
    expiring: List[ExpiringAlert]


class RecentActivity(CamelModel):
    id: str
    dispensal_no: str
    patient_name: str
    prescription_no: str
    amount: float
    created_at: datetime


class DashboardResponse(CamelModel):
    statistics: DashboardStatistics
    priority_prescriptions: List[PriorityPrescription]
    inventory_alerts: InventoryAlerts
    recent_activity: List[RecentActivity]
