from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from dispensary.api.deps import get_settings
from dispensary.api.v1.drugs.schemas import DrugResponse
from dispensary.api.v1.inventory.schemas import (
    StockProduct,
    StockListResponse,
    StockAdjustRequest,
    StockAdjustResponse,
    StockAdjustment,
    StockMovementResponse,
    StockMovementListResponse,
)
from dispensary.core.config import Settings
from dispensary.domain.inventory.models import StockStatus
from dispensary.domain.inventory.service import InventoryService
from dispensary.infrastructure.database import get_db

router = APIRouter(prefix="/pharmacist/inventory", tags=["Inventory"])


@router.get("/stock", response_model=StockListResponse)
async def get_stock_levels(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    category: Optional[str] = None,
    status: Optional[str] = Query(None, pattern="^(all|out_of_stock|low_stock|healthy)$"),
    search: Optional[str] = None
):
    """Stock levels with status, percentage and expiry flags"""
    stock_status = StockStatus(status) if status and status != "all" else None

    result = await InventoryService(db, settings).get_stock_levels(
        page=page,
        limit=limit,
        category=category,
        status=stock_status,
        search=search
    )

    products = []
    for product, computed in result["products"]:
        products.append(StockProduct(
            **DrugResponse.model_validate(product).model_dump(),
            **computed,
            last_updated=product.updated_at
        ))

    return StockListResponse(
        products=products,
        pagination=result["pagination"],
        summary=result["summary"],
        categories=result["categories"]
    )


@router.patch("/stock", response_model=StockAdjustResponse)
async def adjust_stock(
    adjustment: StockAdjustRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings)
):
    """Set a product's quantity on hand and record the change"""
    result = await InventoryService(db, settings).adjust_stock(
        adjustment.product_id,
        adjustment.quantity,
        adjustment.reason,
        adjusted_by=adjustment.adjusted_by
    )
    return StockAdjustResponse(data=StockAdjustment(**result))


@router.get("/stock/{product_id}/movements", response_model=StockMovementListResponse)
async def list_stock_movements(
    product_id: str,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100)
):
    result = await InventoryService(db, settings).list_movements(product_id, page=page, limit=limit)
    return StockMovementListResponse(
        product_id=result["product"].id,
        product_name=result["product"].name,
        movements=[StockMovementResponse.model_validate(m) for m in result["movements"]],
        pagination=result["pagination"]
    )
