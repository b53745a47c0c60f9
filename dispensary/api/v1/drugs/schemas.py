from pydantic import Field, field_validator
from typing import List, Optional
from datetime import datetime

from dispensary.api.v1.schemas import CamelModel


class DrugBase(CamelModel):
    """Catalog fields shared by create and response schemas"""
    code: Optional[str] = Field(None, max_length=64)
    name: str = Field(..., min_length=1, max_length=255)
    generic_name: Optional[str] = Field(None, max_length=255)
    brand_name: Optional[str] = Field(None, max_length=255)
    category: Optional[str] = Field(None, max_length=100)
    manufacturer: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    active_ingredient: Optional[str] = Field(None, max_length=255)
    strength: Optional[str] = Field(None, max_length=100)
    dosage_form: Optional[str] = Field(None, max_length=100)
    quantity: int = Field(0, ge=0)
    reorder_level: Optional[int] = Field(None, ge=0)
    max_stock_level: Optional[int] = Field(None, ge=0)
    price: float = Field(0.0, ge=0)
    cost: Optional[float] = Field(None, ge=0)
    expiry_date: Optional[datetime] = None
    batch_number: Optional[str] = Field(None, max_length=100)
    unit: str = Field("Pieces", max_length=50)
    storage_conditions: Optional[str] = None
    prescription_required: bool = False


class DrugCreate(DrugBase):
    """Schema for adding a drug to the catalog"""
    created_by: Optional[str] = None


class DrugUpdate(CamelModel):
    """Partial update; only the fields sent are changed"""
    drug_id: str
    code: Optional[str] = Field(None, max_length=64)
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    generic_name: Optional[str] = Field(None, max_length=255)
    brand_name: Optional[str] = Field(None, max_length=255)
    category: Optional[str] = Field(None, max_length=100)
    manufacturer: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    active_ingredient: Optional[str] = Field(None, max_length=255)
    strength: Optional[str] = Field(None, max_length=100)
    dosage_form: Optional[str] = Field(None, max_length=100)
    quantity: Optional[int] = Field(None, ge=0)
    reorder_level: Optional[int] = Field(None, ge=0)
    max_stock_level: Optional[int] = Field(None, ge=0)
    price: Optional[float] = Field(None, ge=0)
    cost: Optional[float] = Field(None, ge=0)
    expiry_date: Optional[datetime] = None
    batch_number: Optional[str] = Field(None, max_length=100)
    unit: Optional[str] = Field(None, max_length=50)
    storage_conditions: Optional[str] = None
    prescription_required: Optional[bool] = None
    updated_by: Optional[str] = None

    @field_validator('name', 'quantity', 'price', 'unit', 'prescription_required')
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError('Field may be omitted but not null')
        return v

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True, exclude={'drug_id', 'updated_by'})


class DrugDelete(CamelModel):
    drug_id: str


class DrugResponse(DrugBase):
    """Schema for drug response data"""
    id: str
    is_deleted: bool
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class DrugListResponse(CamelModel):
    success: bool = True
    drugs: List[DrugResponse]


class DrugEnvelope(CamelModel):
    success: bool = True
    drug: DrugResponse
