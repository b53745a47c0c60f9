from typing import Optional, List, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime
import logging
import random
import string

from dispensary.core.exceptions import NotFoundError, ValidationError
from dispensary.domain.inventory.repository import ProductRepository
from dispensary.domain.pagination import pagination_meta
from dispensary.domain.patients.service import PatientService
from dispensary.domain.prescriptions.models import Prescription, PrescriptionPriority, PrescriptionStatus
from dispensary.domain.prescriptions.repository import PrescriptionRepository

logger = logging.getLogger(__name__)


class PrescriptionService:
    """Service layer for writing prescriptions and reading the pharmacy queue"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.prescription_repo = PrescriptionRepository(db)
        self.product_repo = ProductRepository(db)
        self.patient_service = PatientService(db)

    def _generate_prescription_number(self) -> str:
        """Format: RX-YYYY-6 random digits"""
        year = datetime.utcnow().year
        random_digits = ''.join(random.choices(string.digits, k=6))
        return f"RX-{year}-{random_digits}"

    async def create_prescription(self, prescription_data: dict, items: List[dict]) -> Prescription:
        """Write a pending prescription, pricing each line at the product's current price"""
        if not items:
            raise ValidationError(message="A prescription needs at least one item")

        await self.patient_service.get_patient(prescription_data["patient_id"])
        await self.patient_service.get_physician(prescription_data["physician_id"])

        priced_items = []
        for item in items:
            product = await self.product_repo.get_by_id(item["product_id"])
            if not product:
                raise NotFoundError(message="Product not found", details={"product_id": item["product_id"]})
            unit_price = product.price or 0.0
            priced_items.append({
                **item,
                "unit_price": unit_price,
                "total_price": round(unit_price * item["quantity_prescribed"], 2),
            })

        prescription_no = self._generate_prescription_number()
        while await self.prescription_repo.exists_number(prescription_no):
            prescription_no = self._generate_prescription_number()

        try:
            prescription = await self.prescription_repo.create(
                {
                    **prescription_data,
                    "prescription_no": prescription_no,
                    "status": PrescriptionStatus.PENDING,
                    "total_cost": round(sum(i["total_price"] for i in priced_items), 2),
                },
                priced_items
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            f"Created prescription {prescription.prescription_no} with {len(priced_items)} item(s), "
            f"priority={prescription.priority.value}"
        )
        return await self.prescription_repo.get_by_id(prescription.id)

    async def get_prescription(self, prescription_id: str) -> Prescription:
        prescription = await self.prescription_repo.get_by_id(prescription_id)
        if not prescription:
            raise NotFoundError(message="Prescription not found", details={"prescription_id": prescription_id})
        return prescription

    async def get_pending(
        self,
        page: int = 1,
        limit: int = 10,
        priority: Optional[PrescriptionPriority] = None,
        search: Optional[str] = None
    ) -> Dict[str, Any]:
        prescriptions, total = await self.prescription_repo.list_pending(
            skip=(page - 1) * limit,
            limit=limit,
            priority=priority,
            search=search
        )
        counts = await self.prescription_repo.count_pending_by_priority()
        return {
            "prescriptions": prescriptions,
            "pagination": pagination_meta(page, limit, total),
            "priority_counts": {
                "all": total,
                **{priority.value: count for priority, count in counts.items()},
            },
        }
