from typing import Optional, Dict, Any, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime, timedelta

from dispensary.core.config import Settings
from dispensary.domain.dispensing.repository import DispensingRepository
from dispensary.domain.inventory.repository import ProductRepository
from dispensary.domain.prescriptions.repository import PrescriptionRepository


def utc_day_bounds(now: datetime) -> Tuple[datetime, datetime]:
    start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)


class DashboardService:
    """Read-only summary of the pharmacy's day"""

    def __init__(self, db: AsyncSession, settings: Settings):
        self.db = db
        self.settings = settings
        self.prescription_repo = PrescriptionRepository(db)
        self.product_repo = ProductRepository(db)
        self.dispensing_repo = DispensingRepository(db)

    async def get_dashboard(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.utcnow()
        day_start, day_end = utc_day_bounds(now)

        statistics = {
            "pending_prescriptions": await self.prescription_repo.count_dispensable(),
            "dispensed_today": await self.prescription_repo.count_dispensed_between(day_start, day_end),
            "revenue": round(await self.dispensing_repo.sum_payments_between(day_start, day_end), 2),
            "patients_served": await self.dispensing_repo.count_patients_between(day_start, day_end),
        }

        expiry_horizon = now + timedelta(days=self.settings.EXPIRY_WARNING_DAYS)
        return {
            "statistics": statistics,
            "priority_prescriptions": await self.prescription_repo.list_priority_pending(
                self.settings.DASHBOARD_PRIORITY_LIMIT
            ),
            "low_stock": await self.product_repo.list_low_stock(
                self.settings.DEFAULT_REORDER_LEVEL, self.settings.DASHBOARD_ALERT_LIMIT
            ),
            "expiring": await self.product_repo.list_expiring(
                expiry_horizon, self.settings.DASHBOARD_ALERT_LIMIT
            ),
            "recent_activity": await self.dispensing_repo.list_recent(self.settings.DASHBOARD_ACTIVITY_LIMIT),
        }
