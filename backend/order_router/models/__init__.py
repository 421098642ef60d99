"""Database models package."""

from order_router.models.base import Base, DecimalText, init_db
from order_router.models.job import JobModel
from order_router.models.order import OrderEventModel, OrderModel

__all__ = [
    "Base",
    "DecimalText",
    "JobModel",
    "OrderEventModel",
    "OrderModel",
    "init_db",
]
