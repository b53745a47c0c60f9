"""Dispensing a prescription.

One call is one unit of work: the prescription row and every product row it
touches are locked, all checks run before anything is written, and any
failure rolls the whole session back so no stock, item, status, receipt or
payment change survives.
"""
from typing import Optional, List, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime
import logging
import time

from dispensary.core.exceptions import (
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from dispensary.domain.dispensing.models import TransactionType
from dispensary.domain.dispensing.repository import DispensingRepository
from dispensary.domain.inventory.models import MovementType
from dispensary.domain.inventory.repository import ProductRepository, StockMovementRepository
from dispensary.domain.prescriptions.models import (
    Prescription,
    PrescriptionStatus,
    DISPENSABLE_STATUSES,
)
from dispensary.domain.prescriptions.repository import PrescriptionRepository

logger = logging.getLogger(__name__)


def generate_dispensal_no(now: Optional[datetime] = None, epoch_millis: Optional[int] = None) -> str:
    """DISP-<year>-<last 6 digits of the epoch-millisecond timestamp>"""
    now = now or datetime.now()
    if epoch_millis is None:
        epoch_millis = int(time.time() * 1000)
    return f"DISP-{now.year}-{str(epoch_millis)[-6:]}"


def compute_change(total_amount: float, amount_paid: float) -> float:
    return round(max(amount_paid - total_amount, 0.0), 2)


class DispensingService:
    """Service layer for the dispensing transaction"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = DispensingRepository(db)
        self.prescription_repo = PrescriptionRepository(db)
        self.product_repo = ProductRepository(db)
        self.movement_repo = StockMovementRepository(db)

    async def _next_dispensal_no(self) -> str:
        epoch_millis = int(time.time() * 1000)
        dispensal_no = generate_dispensal_no(epoch_millis=epoch_millis)
        # The 6-digit suffix wraps every ~16 minutes; step past any taken number
        while await self.repo.dispensal_number_exists(dispensal_no):
            epoch_millis += 1
            dispensal_no = generate_dispensal_no(epoch_millis=epoch_millis)
        return dispensal_no

    def _validate_lines(self, prescription: Prescription, lines: List[dict]) -> List[tuple]:
        """Pair each requested line with its prescription item"""
        if not lines:
            raise ValidationError(message="No items selected for dispensing")

        items_by_id = {item.id: item for item in prescription.items}
        seen = set()
        pairs = []
        for line in lines:
            item_id = line["item_id"]
            quantity = line["quantity_dispensed"]

            item = items_by_id.get(item_id)
            if item is None:
                raise ValidationError(
                    message=f"Prescription item not found: {item_id}",
                    details={"item_id": item_id}
                )
            if item_id in seen:
                raise ValidationError(
                    message=f"Prescription item listed more than once: {item_id}",
                    details={"item_id": item_id}
                )
            seen.add(item_id)

            if item.is_dispensed:
                raise ValidationError(
                    message=f"{item.product.name} has already been dispensed",
                    details={"item_id": item_id}
                )
            if quantity <= 0:
                raise ValidationError(
                    message="Quantity must be greater than zero",
                    details={"item_id": item_id, "quantity_dispensed": quantity}
                )
            if quantity > item.quantity_prescribed:
                raise ValidationError(
                    message=(
                        f"Cannot dispense {quantity} of {item.product.name}; "
                        f"only {item.quantity_prescribed} prescribed"
                    ),
                    details={"item_id": item_id, "quantity_prescribed": item.quantity_prescribed}
                )
            product_id = line.get("product_id")
            if product_id and product_id != item.product_id:
                raise ValidationError(
                    message=f"Product {product_id} does not match prescription item {item_id}",
                    details={"item_id": item_id, "product_id": product_id}
                )
            pairs.append((item, quantity))
        return pairs

    async def dispense(
        self,
        prescription_id: str,
        lines: List[dict],
        total_amount: float = 0.0,
        amount_paid: float = 0.0,
        payment_method: Optional[str] = None,
        notes: Optional[str] = None,
        dispensed_by: Optional[str] = None
    ) -> Dict[str, Any]:
        """Dispense some or all remaining items of a prescription"""
        try:
            result = await self._dispense(
                prescription_id, lines, total_amount, amount_paid, payment_method, notes, dispensed_by
            )
            await self.db.commit()
        except Exception as exc:
            await self.db.rollback()
            logger.warning(f"Dispensing prescription {prescription_id} rejected: {exc}")
            raise

        logger.info(
            f"Dispensed {result['dispensal_no']} for prescription {result['prescription_no']}: "
            f"{len(lines)} item(s), status={result['status'].value}, paid={amount_paid}"
        )
        return result

    async def _dispense(
        self,
        prescription_id: str,
        lines: List[dict],
        total_amount: float,
        amount_paid: float,
        payment_method: Optional[str],
        notes: Optional[str],
        dispensed_by: Optional[str]
    ) -> Dict[str, Any]:
        prescription = await self.prescription_repo.get_for_update(prescription_id)
        if not prescription:
            raise NotFoundError(message="Prescription not found", details={"prescription_id": prescription_id})

        observed_status = prescription.status
        if observed_status not in DISPENSABLE_STATUSES:
            raise ConflictError(
                message=f"Prescription is not dispensable (status: {observed_status.value})",
                details={"prescription_id": prescription_id, "status": observed_status.value}
            )

        pairs = self._validate_lines(prescription, lines)

        # Several lines may draw on the same product
        required: Dict[str, int] = {}
        for item, quantity in pairs:
            required[item.product_id] = required.get(item.product_id, 0) + quantity

        products = {p.id: p for p in await self.product_repo.lock_many(required)}
        for product_id, quantity in required.items():
            product = products.get(product_id)
            if product is None or product.is_deleted:
                raise ValidationError(
                    message=f"Product no longer available: {product_id}",
                    details={"product_id": product_id}
                )
            if product.quantity < quantity:
                raise InsufficientStockError(product.id, product.name, product.quantity, quantity)

        now = datetime.utcnow()
        dispensal_no = await self._next_dispensal_no()

        for item, quantity in pairs:
            if not await self.prescription_repo.mark_item_dispensed(item.id, quantity, now, dispensed_by):
                raise ConflictError(
                    message=f"{item.product.name} was dispensed by another request",
                    details={"prescription_id": prescription.id, "item_id": item.id}
                )

        for product_id, quantity in required.items():
            product = products[product_id]
            balance_before = product.quantity
            if not await self.product_repo.decrement_quantity(product_id, quantity):
                # Stock moved underneath us despite the lock
                raise InsufficientStockError(product.id, product.name, balance_before, quantity)
            await self.movement_repo.record(
                product_id=product_id,
                movement_type=MovementType.DISPENSE,
                balance_before=balance_before,
                balance_after=balance_before - quantity,
                reason=f"Dispensed for prescription {prescription.prescription_no}",
                reference=dispensal_no,
                created_by=dispensed_by
            )

        dispensal = await self.repo.create_dispensal(
            {
                "dispensal_no": dispensal_no,
                "prescription_id": prescription.id,
                "prescription_no": prescription.prescription_no,
                "patient_id": prescription.patient_id,
                "dispensed_by": dispensed_by,
                "total_amount": total_amount,
                "amount_paid": amount_paid,
                "payment_method": payment_method,
                "notes": notes,
                "created_at": now,
            },
            [
                {"prescription_item_id": item.id, "product_id": item.product_id, "quantity": quantity}
                for item, quantity in pairs
            ]
        )

        fully_dispensed = await self.prescription_repo.count_undispensed_items(prescription.id) == 0
        new_status = PrescriptionStatus.DISPENSED if fully_dispensed else PrescriptionStatus.PARTIALLY_DISPENSED
        status_values = {
            "status": new_status,
            "amount_paid": (prescription.amount_paid or 0.0) + amount_paid,
            "updated_at": now,
        }
        if fully_dispensed:
            status_values["dispensed_at"] = now
            status_values["dispensed_by"] = dispensed_by

        if not await self.prescription_repo.transition_status(prescription.id, observed_status, status_values):
            raise ConflictError(
                message="Prescription was changed by another dispensing request",
                details={"prescription_id": prescription.id}
            )

        if amount_paid > 0:
            await self.repo.create_payment({
                "patient_id": prescription.patient_id,
                "prescription_id": prescription.id,
                "amount": amount_paid,
                "type": TransactionType.DEBIT,
                "payment_method": payment_method,
                "description": f"Payment for prescription {prescription.prescription_no}",
                "created_at": now,
            })

        return {
            "dispensal": dispensal,
            "dispensal_no": dispensal.dispensal_no,
            "prescription_no": prescription.prescription_no,
            "patient_name": prescription.patient.full_name,
            "status": new_status,
            "total_amount": total_amount,
            "amount_paid": amount_paid,
            "change": compute_change(total_amount, amount_paid),
        }
