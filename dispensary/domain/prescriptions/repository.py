from typing import Optional, List, Tuple, Dict
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func, or_
from sqlalchemy.orm import selectinload, joinedload
from datetime import datetime

from dispensary.domain.patients.models import Patient
from dispensary.domain.prescriptions.models import (
    Prescription,
    PrescriptionItem,
    PrescriptionPriority,
    PrescriptionStatus,
    DISPENSABLE_STATUSES,
    priority_rank_expression,
)


def _with_details(query):
    return query.options(
        joinedload(Prescription.patient),
        joinedload(Prescription.physician),
        selectinload(Prescription.items).joinedload(PrescriptionItem.product)
    )


class PrescriptionRepository:
    """Repository for prescriptions and their line items"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, prescription_data: dict, items: List[dict]) -> Prescription:
        prescription = Prescription(**prescription_data)
        for position, item_data in enumerate(items):
            prescription.items.append(PrescriptionItem(position=position, **item_data))
        self.db.add(prescription)
        await self.db.flush()
        return prescription

    async def exists_number(self, prescription_no: str) -> bool:
        result = await self.db.scalar(
            select(func.count(Prescription.id)).where(Prescription.prescription_no == prescription_no)
        )
        return bool(result)

    async def get_by_id(self, prescription_id: str) -> Optional[Prescription]:
        """Live prescription with patient, physician, items and products loaded"""
        result = await self.db.execute(
            _with_details(select(Prescription))
            .where(Prescription.id == prescription_id, Prescription.is_deleted.is_(False))
            .execution_options(populate_existing=True)
        )
        return result.unique().scalar_one_or_none()

    async def get_for_update(self, prescription_id: str) -> Optional[Prescription]:
        """Lock the prescription row, then load it with its items"""
        locked = await self.db.execute(
            select(Prescription.id)
            .where(Prescription.id == prescription_id, Prescription.is_deleted.is_(False))
            .with_for_update()
        )
        if locked.scalar_one_or_none() is None:
            return None
        return await self.get_by_id(prescription_id)

    def _pending_query(self, priority: Optional[PrescriptionPriority] = None, search: Optional[str] = None):
        query = select(Prescription).where(
            Prescription.status.in_(DISPENSABLE_STATUSES),
            Prescription.is_deleted.is_(False)
        )

        if priority:
            query = query.where(Prescription.priority == priority)

        if search:
            pattern = f"%{search}%"
            query = query.join(Patient, Patient.id == Prescription.patient_id).where(or_(
                Prescription.prescription_no.ilike(pattern),
                Patient.first_name.ilike(pattern),
                Patient.last_name.ilike(pattern),
                Patient.matric_number.ilike(pattern)
            ))

        return query

    async def list_pending(
        self,
        skip: int = 0,
        limit: int = 10,
        priority: Optional[PrescriptionPriority] = None,
        search: Optional[str] = None
    ) -> Tuple[List[Prescription], int]:
        """Pending queue, most urgent and then oldest first, plus the filtered total"""
        query = self._pending_query(priority, search)

        total = await self.db.scalar(select(func.count()).select_from(query.subquery()))

        result = await self.db.execute(
            _with_details(query)
            .order_by(priority_rank_expression(), Prescription.created_at.asc(), Prescription.id.asc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.unique().scalars().all()), total or 0

    async def count_pending_by_priority(self) -> Dict[PrescriptionPriority, int]:
        result = await self.db.execute(
            select(Prescription.priority, func.count(Prescription.id))
            .where(
                Prescription.status.in_(DISPENSABLE_STATUSES),
                Prescription.is_deleted.is_(False)
            )
            .group_by(Prescription.priority)
        )
        counts = {priority: 0 for priority in PrescriptionPriority}
        for priority, count in result.all():
            counts[PrescriptionPriority(priority)] = count
        return counts

    async def count_dispensable(self) -> int:
        """Prescriptions still waiting on the pharmacist, partly dispensed ones included"""
        return await self.db.scalar(
            select(func.count(Prescription.id)).where(
                Prescription.status.in_(DISPENSABLE_STATUSES),
                Prescription.is_deleted.is_(False)
            )
        ) or 0

    async def count_dispensed_between(self, start: datetime, end: datetime) -> int:
        return await self.db.scalar(
            select(func.count(Prescription.id)).where(
                Prescription.status == PrescriptionStatus.DISPENSED,
                Prescription.dispensed_at >= start,
                Prescription.dispensed_at < end,
                Prescription.is_deleted.is_(False)
            )
        ) or 0

    async def list_priority_pending(self, limit: int) -> List[Prescription]:
        result = await self.db.execute(
            _with_details(select(Prescription))
            .where(
                Prescription.status.in_(DISPENSABLE_STATUSES),
                Prescription.priority.in_([PrescriptionPriority.EMERGENCY, PrescriptionPriority.URGENT]),
                Prescription.is_deleted.is_(False)
            )
            .order_by(priority_rank_expression(), Prescription.created_at.asc())
            .limit(limit)
        )
        return list(result.unique().scalars().all())

    async def transition_status(
        self,
        prescription_id: str,
        expected: PrescriptionStatus,
        values: dict
    ) -> bool:
        """Write new status fields only if the row still has the status we read"""
        result = await self.db.execute(
            update(Prescription)
            .where(Prescription.id == prescription_id, Prescription.status == expected)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def mark_item_dispensed(
        self,
        item_id: str,
        quantity: int,
        dispensed_at: datetime,
        dispensed_by: Optional[str] = None
    ) -> bool:
        """Mark one item dispensed unless another request already did"""
        result = await self.db.execute(
            update(PrescriptionItem)
            .where(PrescriptionItem.id == item_id, PrescriptionItem.is_dispensed.is_(False))
            .values(
                quantity_dispensed=quantity,
                is_dispensed=True,
                dispensed_at=dispensed_at,
                dispensed_by=dispensed_by
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def count_undispensed_items(self, prescription_id: str) -> int:
        return await self.db.scalar(
            select(func.count(PrescriptionItem.id)).where(
                PrescriptionItem.prescription_id == prescription_id,
                PrescriptionItem.is_dispensed.is_(False)
            )
        ) or 0
