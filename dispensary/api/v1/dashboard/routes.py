from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from dispensary.api.deps import get_settings
from dispensary.api.v1.dashboard.schemas import (
    DashboardResponse,
    DashboardStatistics,
    PriorityPrescription,
    InventoryAlerts,
    LowStockAlert,
    ExpiringAlert,
    RecentActivity,
)
from dispensary.api.v1.prescriptions.schemas import PendingPrescription
from dispensary.core.config import Settings
from dispensary.domain.dashboard.service import DashboardService
from dispensary.domain.inventory.stock import reorder_threshold
from dispensary.infrastructure.database import get_db

router = APIRouter(prefix="/pharmacist", tags=["Dashboard"])


@router.get("/dashboard", response_model=DashboardResponse)
async def get_dashboard(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings)
):
    """Today's figures, urgent prescriptions, inventory alerts and recent dispensals"""
    data = await DashboardService(db, settings).get_dashboard()

    return DashboardResponse(
        statistics=DashboardStatistics(**data["statistics"]),
        priority_prescriptions=[
            PriorityPrescription.from_pending(PendingPrescription.from_prescription(p))
            for p in data["priority_prescriptions"]
        ],
        inventory_alerts=InventoryAlerts(
            low_stock=[
                LowStockAlert(
                    id=product.id,
                    name=product.name,
                    current=product.quantity,
                    reorder_level=reorder_threshold(product.reorder_level, settings.DEFAULT_REORDER_LEVEL)
                )
                for product in data["low_stock"]
            ],
            expiring=[
                ExpiringAlert(
                    id=product.id,
                    name=product.name,
                    expiry_date=product.expiry_date,
                    quantity=product.quantity
                )
                for product in data["expiring"]
            ]
        ),
        recent_activity=[
            RecentActivity(
                id=dispensal.id,
                dispensal_no=dispensal.dispensal_no,
                patient_name=dispensal.patient.full_name,
                prescription_no=dispensal.prescription_no,
                amount=dispensal.total_amount,
                created_at=dispensal.created_at
            )
            for dispensal in data["recent_activity"]
        ]
    )
