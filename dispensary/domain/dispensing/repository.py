from typing import List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sqlalchemy.orm import joinedload
from datetime import datetime

from dispensary.domain.dispensing.models import DrugDispensal, DispensalItem, BalanceTransaction


class DispensingRepository:
    """Append-only writes for dispensal receipts and payments"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_dispensal(self, dispensal_data: dict, items: List[dict]) -> DrugDispensal:
        dispensal = DrugDispensal(**dispensal_data)
        self.db.add(dispensal)
        await self.db.flush()

        for it in items:
            di = DispensalItem(dispensal_id=dispensal.id, **it)
            self.db.add(di)

        await self.db.flush()
        return dispensal

    async def create_payment(self, payment_data: dict) -> BalanceTransaction:
        payment = BalanceTransaction(**payment_data)
        self.db.add(payment)
        await self.db.flush()
        return payment

    async def dispensal_number_exists(self, dispensal_no: str) -> bool:
        result = await self.db.scalar(
            select(func.count(DrugDispensal.id)).where(DrugDispensal.dispensal_no == dispensal_no)
        )
        return bool(result)

    async def list_recent(self, limit: int) -> List[DrugDispensal]:
        result = await self.db.execute(
            select(DrugDispensal)
            .options(joinedload(DrugDispensal.patient))
            .order_by(DrugDispensal.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def sum_payments_between(self, start: datetime, end: datetime) -> float:
        total = await self.db.scalar(
            select(func.coalesce(func.sum(BalanceTransaction.amount), 0.0)).where(
                BalanceTransaction.created_at >= start,
                BalanceTransaction.created_at < end
            )
        )
        return float(total or 0.0)

    async def count_patients_between(self, start: datetime, end: datetime) -> int:
        return await self.db.scalar(
            select(func.count(func.distinct(DrugDispensal.patient_id))).where(
                DrugDispensal.created_at >= start,
                DrugDispensal.created_at < end
            )
        ) or 0
