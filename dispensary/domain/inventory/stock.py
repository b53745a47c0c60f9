"""Stock level rules shared by the stock listing and the dashboard.

Everything here is a pure function of a product's current figures and the
deployment thresholds; nothing touches the database. The SQL helpers mirror
the Python rules so listings can filter and count in the database with the
same meaning.
"""
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import and_, case, func

from dispensary.domain.inventory.models import Product, StockStatus


def reorder_threshold(reorder_level: Optional[int], default_reorder_level: int) -> int:
    """A missing or non-positive reorder level falls back to the default."""
    if reorder_level and reorder_level > 0:
        return reorder_level
    return default_reorder_level


def classify_stock(quantity: int, reorder_level: Optional[int], default_reorder_level: int) -> StockStatus:
    if quantity <= 0:
        return StockStatus.OUT_OF_STOCK
    if quantity <= reorder_threshold(reorder_level, default_reorder_level):
        return StockStatus.LOW_STOCK
    return StockStatus.HEALTHY


def stock_percentage(quantity: int, reorder_level: Optional[int], default_reorder_level: int) -> float:
    threshold = reorder_threshold(reorder_level, default_reorder_level)
    return min(quantity / threshold * 100, 100.0)


def is_expiring_soon(
    expiry_date: Optional[datetime],
    warning_days: int,
    now: Optional[datetime] = None
) -> bool:
    # Already expired stock is reported too
    if expiry_date is None:
        return False
    now = now or datetime.utcnow()
    return expiry_date - now < timedelta(days=warning_days)


def threshold_expression(default_reorder_level: int):
    return case(
        (func.coalesce(Product.reorder_level, 0) > 0, Product.reorder_level),
        else_=default_reorder_level
    )


def status_condition(status: StockStatus, default_reorder_level: int):
    """SQL filter equivalent to classify_stock(...) == status"""
    threshold = threshold_expression(default_reorder_level)
    if status == StockStatus.OUT_OF_STOCK:
        return Product.quantity <= 0
    if status == StockStatus.LOW_STOCK:
        return and_(Product.quantity > 0, Product.quantity <= threshold)
    return Product.quantity > threshold
