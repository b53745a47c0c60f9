from sqlalchemy import Column, String, Integer, Float, DateTime, ForeignKey, Text, Boolean, CheckConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from dispensary.infrastructure.database import Base
from dispensary.domain.mixins import UUIDPrimaryKeyMixin, SoftDeleteMixin, TimestampMixin, value_enum


class StockStatus(str, enum.Enum):
    """Stock level classification"""
    OUT_OF_STOCK = "out_of_stock"
    LOW_STOCK = "low_stock"
    HEALTHY = "healthy"


class MovementType(str, enum.Enum):
    """Kind of quantity change recorded in the stock ledger"""
    IN = "in"
    OUT = "out"
    COUNT = "count"
    DISPENSE = "dispense"


class Product(UUIDPrimaryKeyMixin, SoftDeleteMixin, TimestampMixin, Base):
    """A drug product held in the dispensary, with its quantity on hand"""
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_products_quantity_non_negative"),
    )

    code = Column(String(64), nullable=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    generic_name = Column(String(255))
    brand_name = Column(String(255))
    category = Column(String(100), index=True)
    manufacturer = Column(String(255))
    description = Column(Text)
    active_ingredient = Column(String(255))
    strength = Column(String(100))
    dosage_form = Column(String(100))

    quantity = Column(Integer, nullable=False, default=0)
    reorder_level = Column(Integer, nullable=True)
    max_stock_level = Column(Integer, nullable=True)

    price = Column(Float, nullable=False, default=0.0)
    cost = Column(Float, nullable=True)

    expiry_date = Column(DateTime, nullable=True)
    batch_number = Column(String(100))
    unit = Column(String(50), nullable=False, default="Pieces")
    storage_conditions = Column(Text)
    prescription_required = Column(Boolean, nullable=False, default=False)

    created_by = Column(String(36), nullable=True)


class StockMovement(UUIDPrimaryKeyMixin, Base):
    """Append-only ledger of every change to a product's quantity"""
    __tablename__ = "stock_movements"

    product_id = Column(String(36), ForeignKey("products.id"), nullable=False, index=True)
    movement_type = Column(value_enum(MovementType), nullable=False)
    quantity = Column(Integer, nullable=False)
    balance_before = Column(Integer, nullable=False)
    balance_after = Column(Integer, nullable=False)
    reason = Column(Text, nullable=True)
    reference = Column(String(64), nullable=True, index=True)
    created_by = Column(String(36), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    product = relationship("Product")
