"""Order valuation and reconciliation building blocks."""

from .blacklist import BlacklistRegistry
from .merger import OrderSnapshotMerger
from .savings import compute_savings
from .valuation import ValuationResolver
from .work_queue import RateLimitedQueue

__all__ = [
    "BlacklistRegistry",
    "OrderSnapshotMerger",
    "RateLimitedQueue",
    "ValuationResolver",
    "compute_savings",
]
