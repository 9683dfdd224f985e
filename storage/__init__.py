"""Storage package providing persistence utilities for limit order data."""

from .models import Order, OrderStatus, ValuationSnapshot
from .sqlite_repository import SQLiteRepository

__all__ = ["Order", "OrderStatus", "SQLiteRepository", "ValuationSnapshot"]
