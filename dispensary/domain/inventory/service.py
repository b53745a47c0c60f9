from typing import Optional, List, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime
import logging

from dispensary.core.config import Settings
from dispensary.core.exceptions import ConflictError, NotFoundError
from dispensary.domain.inventory.models import Product, StockStatus, MovementType
from dispensary.domain.inventory.repository import ProductRepository, StockMovementRepository
from dispensary.domain.inventory import stock
from dispensary.domain.pagination import pagination_meta

logger = logging.getLogger(__name__)


class InventoryService:
    """Drug catalog maintenance, stock adjustment and stock level reporting"""

    def __init__(self, db: AsyncSession, settings: Settings):
        self.db = db
        self.settings = settings
        self.product_repo = ProductRepository(db)
        self.movement_repo = StockMovementRepository(db)

    # Catalog

    async def list_drugs(self) -> List[Product]:
        return await self.product_repo.list_live()

    async def create_drug(self, drug_data: dict) -> Product:
        """Add a product to the catalog; its opening quantity goes on the ledger"""
        code = drug_data.get("code")
        try:
            if code and await self.product_repo.get_by_code(code):
                raise ConflictError(message="Drug code already exists", details={"code": code})

            drug = await self.product_repo.create(drug_data)
            if drug.quantity:
                await self.movement_repo.record(
                    product_id=drug.id,
                    movement_type=MovementType.IN,
                    balance_before=0,
                    balance_after=drug.quantity,
                    reason="Opening stock",
                    created_by=drug.created_by
                )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(drug)
        logger.info(f"Created drug {drug.id} ({drug.name}, code={drug.code}, qty={drug.quantity})")
        return drug

    async def update_drug(self, drug_id: str, update_data: dict, updated_by: Optional[str] = None) -> Product:
        """Apply the given fields to a live product"""
        try:
            drug = await self.product_repo.get_for_update(drug_id)
            if not drug:
                raise NotFoundError(message="Drug does not exist", details={"drug_id": drug_id})

            code = update_data.get("code")
            if code and code != drug.code and await self.product_repo.get_by_code(code, exclude_id=drug_id):
                raise ConflictError(message="Drug code already exists", details={"code": code})

            old_quantity = drug.quantity
            for field, value in update_data.items():
                setattr(drug, field, value)
            drug.updated_at = datetime.utcnow()

            if "quantity" in update_data and update_data["quantity"] != old_quantity:
                await self.movement_repo.record(
                    product_id=drug.id,
                    movement_type=MovementType.IN if drug.quantity > old_quantity else MovementType.OUT,
                    balance_before=old_quantity,
                    balance_after=drug.quantity,
                    reason="Catalog update",
                    created_by=updated_by
                )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(drug)
        logger.info(f"Updated drug {drug.id}: {sorted(update_data)}")
        return drug

    async def delete_drug(self, drug_id: str) -> Product:
        """Soft delete: the row stays, flagged is_deleted"""
        drug = await self.product_repo.get_by_id(drug_id)
        if not drug:
            raise NotFoundError(message="Drug does not exist", details={"drug_id": drug_id})

        drug.is_deleted = True
        drug.updated_at = datetime.utcnow()
        await self.db.commit()
        await self.db.refresh(drug)
        logger.info(f"Deleted drug {drug.id} ({drug.name})")
        return drug

    # Stock

    async def adjust_stock(self, product_id: str, quantity: int, reason: str, adjusted_by: Optional[str] = None) -> Dict[str, int]:
        """Set a product's quantity on hand, e.g. after a count or a delivery"""
        try:
            product = await self.product_repo.get_for_update(product_id)
            if not product:
                raise NotFoundError(message="Product not found", details={"product_id": product_id})

            old_quantity = product.quantity
            difference = quantity - old_quantity

            product.quantity = quantity
            product.updated_at = datetime.utcnow()

            if difference > 0:
                movement_type = MovementType.IN
            elif difference < 0:
                movement_type = MovementType.OUT
            else:
                movement_type = MovementType.COUNT

            await self.movement_repo.record(
                product_id=product.id,
                movement_type=movement_type,
                balance_before=old_quantity,
                balance_after=quantity,
                reason=reason,
                created_by=adjusted_by
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            f"Adjusted stock of {product.id} ({product.name}): {old_quantity} -> {quantity} "
            f"by {adjusted_by or 'unknown'}: {reason}"
        )
        return {
            "old_quantity": old_quantity,
            "new_quantity": quantity,
            "difference": difference,
        }

    async def list_movements(self, product_id: str, page: int = 1, limit: int = 20) -> Dict[str, Any]:
        product = await self.product_repo.get_by_id(product_id, include_deleted=True)
        if not product:
            raise NotFoundError(message="Product not found", details={"product_id": product_id})

        movements, total = await self.movement_repo.list_for_product(
            product_id, skip=(page - 1) * limit, limit=limit
        )
        return {
            "product": product,
            "movements": movements,
            "pagination": pagination_meta(page, limit, total),
        }

    def describe_stock(self, product: Product, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Computed stock fields for one product"""
        default_level = self.settings.DEFAULT_REORDER_LEVEL
        return {
            "stock_status": stock.classify_stock(product.quantity, product.reorder_level, default_level),
            "stock_percentage": stock.stock_percentage(product.quantity, product.reorder_level, default_level),
            "is_expiring_soon": stock.is_expiring_soon(product.expiry_date, self.settings.EXPIRY_WARNING_DAYS, now),
        }

    async def get_stock_levels(
        self,
        page: int = 1,
        limit: int = 20,
        category: Optional[str] = None,
        status: Optional[StockStatus] = None,
        search: Optional[str] = None
    ) -> Dict[str, Any]:
        """Paginated stock listing with a catalog-wide summary"""
        default_level = self.settings.DEFAULT_REORDER_LEVEL
        if category == "all":
            category = None

        products, total = await self.product_repo.search_stock(
            default_level,
            skip=(page - 1) * limit,
            limit=limit,
            category=category,
            status=status,
            search=search
        )
        counts = await self.product_repo.count_by_status(default_level)
        categories = await self.product_repo.list_categories()

        now = datetime.utcnow()
        return {
            "products": [(product, self.describe_stock(product, now)) for product in products],
            "pagination": pagination_meta(page, limit, total),
            "summary": {
                "total_drugs": counts["total"],
                "in_stock": counts["total"] - counts[StockStatus.OUT_OF_STOCK],
                "low_stock": counts[StockStatus.LOW_STOCK],
                "out_of_stock": counts[StockStatus.OUT_OF_STOCK],
            },
            "categories": categories,
        }

