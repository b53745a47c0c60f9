from pydantic import Field, field_validator
from typing import List, Optional
from datetime import datetime

from dispensary.api.v1.drugs.schemas import DrugResponse
from dispensary.api.v1.schemas import CamelModel, PaginationMeta
from dispensary.domain.inventory.models import StockStatus, MovementType


class StockProduct(DrugResponse):
    """A product with its computed stock figures"""
    stock_status: StockStatus
    stock_percentage: float
    is_expiring_soon: bool
    last_updated: datetime


class StockSummary(CamelModel):
    total_drugs: int
    in_stock: int
    low_stock: int
    out_of_stock: int


class StockListResponse(CamelModel):
    products: List[StockProduct]
    pagination: PaginationMeta
    summary: StockSummary
    categories: List[str]


class StockAdjustRequest(CamelModel):
    product_id: str
    quantity: int = Field(..., ge=0)
    reason: str = Field(..., max_length=500)
    adjusted_by: Optional[str] = None

    @field_validator('reason')
    @classmethod
    def reason_not_blank(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Reason is required')
        return v


class StockAdjustment(CamelModel):
    old_quantity: int
    new_quantity: int
    difference: int


class StockAdjustResponse(CamelModel):
    success: bool = True
    message: str = "Stock adjusted successfully"
    data: StockAdjustment


class StockMovementResponse(CamelModel):
    id: str
    product_id: str
    movement_type: MovementType
    quantity: int
    balance_before: int
    balance_after: int
    reason: Optional[str] = None
    reference: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime


class StockMovementListResponse(CamelModel):
    product_id: str
    product_name: str
    movements: List[StockMovementResponse]
    pagination: PaginationMeta
