from typing import Optional, List, Tuple, Iterable
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func, or_
from datetime import datetime

from dispensary.domain.inventory.models import Product, StockMovement, StockStatus, MovementType
from dispensary.domain.inventory.stock import status_condition


class ProductRepository:
    """Repository for the product catalog and quantities on hand"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, product_data: dict) -> Product:
        product = Product(**product_data)
        self.db.add(product)
        await self.db.flush()
        return product

    async def get_by_id(self, product_id: str, include_deleted: bool = False) -> Optional[Product]:
        query = select(Product).where(Product.id == product_id)
        if not include_deleted:
            query = query.where(Product.is_deleted.is_(False))
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_for_update(self, product_id: str) -> Optional[Product]:
        """Load a live product and lock its row until the transaction ends"""
        result = await self.db.execute(
            select(Product)
            .where(Product.id == product_id, Product.is_deleted.is_(False))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def lock_many(self, product_ids: Iterable[str]) -> List[Product]:
        """Lock several product rows, always in id order"""
        ids = sorted(set(product_ids))
        if not ids:
            return []
        result = await self.db.execute(
            select(Product)
            .where(Product.id.in_(ids))
            .order_by(Product.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def get_by_code(self, code: str, exclude_id: Optional[str] = None) -> Optional[Product]:
        """Live product carrying this code, optionally ignoring one record"""
        query = select(Product).where(Product.code == code, Product.is_deleted.is_(False))
        if exclude_id:
            query = query.where(Product.id != exclude_id)
        result = await self.db.execute(query.limit(1))
        return result.scalar_one_or_none()

    async def list_live(self) -> List[Product]:
        result = await self.db.execute(
            select(Product)
            .where(Product.is_deleted.is_(False))
            .order_by(Product.created_at.desc(), Product.name.asc())
        )
        return list(result.scalars().all())

    def _stock_query(
        self,
        default_reorder_level: int,
        category: Optional[str] = None,
        status: Optional[StockStatus] = None,
        search: Optional[str] = None
    ):
        query = select(Product).where(Product.is_deleted.is_(False))

        if category:
            query = query.where(Product.category == category)

        if search:
            pattern = f"%{search}%"
            query = query.where(or_(
                Product.name.ilike(pattern),
                Product.generic_name.ilike(pattern),
                Product.brand_name.ilike(pattern)
            ))

        if status:
            query = query.where(status_condition(status, default_reorder_level))

        return query

    async def search_stock(
        self,
        default_reorder_level: int,
        skip: int = 0,
        limit: int = 20,
        category: Optional[str] = None,
        status: Optional[StockStatus] = None,
        search: Optional[str] = None
    ) -> Tuple[List[Product], int]:
        """Filtered page of live products, scarcest first, plus the filtered total"""
        query = self._stock_query(default_reorder_level, category, status, search)

        total = await self.db.scalar(select(func.count()).select_from(query.subquery()))

        result = await self.db.execute(
            query.order_by(Product.quantity.asc(), Product.name.asc()).offset(skip).limit(limit)
        )
        return list(result.scalars().all()), total or 0

    async def count_by_status(self, default_reorder_level: int) -> dict:
        """Live product counts: total plus one per stock status"""
        counts = {"total": await self.db.scalar(
            select(func.count(Product.id)).where(Product.is_deleted.is_(False))
        ) or 0}
        for status in StockStatus:
            counts[status] = await self.db.scalar(
                select(func.count(Product.id)).where(
                    Product.is_deleted.is_(False),
                    status_condition(status, default_reorder_level)
                )
            ) or 0
        return counts

    async def list_categories(self) -> List[str]:
        result = await self.db.execute(
            select(Product.category)
            .where(Product.is_deleted.is_(False), Product.category.is_not(None), Product.category != "")
            .distinct()
            .order_by(Product.category)
        )
        return [row[0] for row in result.all()]

    async def list_low_stock(self, default_reorder_level: int, limit: int) -> List[Product]:
        result = await self.db.execute(
            select(Product)
            .where(
                Product.is_deleted.is_(False),
                status_condition(StockStatus.LOW_STOCK, default_reorder_level)
            )
            .order_by(Product.quantity.asc(), Product.name.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def list_expiring(self, horizon: datetime, limit: int) -> List[Product]:
        """Stock expiring before the horizon, already expired stock first"""
        result = await self.db.execute(
            select(Product)
            .where(
                Product.is_deleted.is_(False),
                Product.expiry_date.is_not(None),
                Product.expiry_date < horizon
            )
            .order_by(Product.expiry_date.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def decrement_quantity(self, product_id: str, amount: int) -> bool:
        """Take stock off a product only if enough is on hand; False when it is not"""
        result = await self.db.execute(
            update(Product)
            .where(Product.id == product_id, Product.quantity >= amount)
            .values(quantity=Product.quantity - amount, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class StockMovementRepository:
    """Append-only access to the stock ledger"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(
        self,
        product_id: str,
        movement_type: MovementType,
        balance_before: int,
        balance_after: int,
        reason: Optional[str] = None,
        reference: Optional[str] = None,
        created_by: Optional[str] = None
    ) -> StockMovement:
        movement = StockMovement(
            product_id=product_id,
            movement_type=movement_type,
            quantity=abs(balance_after - balance_before),
            balance_before=balance_before,
            balance_after=balance_after,
            reason=reason,
            reference=reference,
            created_by=created_by
        )
        self.db.add(movement)
        await self.db.flush()
        return movement

    async def list_for_product(self, product_id: str, skip: int = 0, limit: int = 20) -> Tuple[List[StockMovement], int]:
        total = await self.db.scalar(
            select(func.count(StockMovement.id)).where(StockMovement.product_id == product_id)
        )
        result = await self.db.execute(
            select(StockMovement)
            .where(StockMovement.product_id == product_id)
            .order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0
