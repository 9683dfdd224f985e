"""Read-only projections over persisted orders: stats, leaderboards, defects."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional

from constants import (
    INCREASE_DECIMAL_PLACES,
    LATEST_ORDERS_SIZE,
    LEADERBOARD_SIZE,
    LOCKED_DECIMAL_PLACES,
)
from enrichment.amounts import DECIMAL_CONTEXT, format_decimal, is_present, quantize, to_decimal
from enrichment.blacklist import BlacklistRegistry
from storage.models import Order, OrderStatus


def _created(order: Order, name: str) -> Optional[str]:
    return getattr(order.created_snapshot, name) if order.created_snapshot else None


def _executed(order: Order, name: str) -> Optional[str]:
    return getattr(order.executed_snapshot, name) if order.executed_snapshot else None


def is_fully_enriched(order: Order) -> bool:
    """Closed order with every valuation the aggregates depend on."""
    return (
        order.status is OrderStatus.CLOSED
        and is_present(_created(order, "amount_in"))
        and is_present(_created(order, "amount_out_min"))
        and is_present(_executed(order, "received"))
    )


def _sum(values: Iterable[Optional[str]]) -> Decimal:
    total = Decimal(0)
    for value in values:
        parsed = to_decimal(value)
        if parsed is not None:
            total = DECIMAL_CONTEXT.add(total, parsed)
    return total


def _top(orders: List[Order], key: Callable[[Order], Optional[str]], limit: int) -> List[Order]:
    ranked = [(to_decimal(key(order)), order) for order in orders]
    ranked = [(value, order) for value, order in ranked if value is not None]
    ranked.sort(key=lambda item: item[0], reverse=True)
    return [order for _, order in ranked[:limit]]


def _last_activity(order: Order) -> Optional[datetime]:
    timestamp = order.canceled_timestamp or order.executed_timestamp or order.created_timestamp
    if not timestamp:
        return None
    try:
        return datetime.fromtimestamp(int(timestamp), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError):
        return None


@dataclass
class OrderStats:
    order_count: int
    open_order_count: int
    executed_order_count: int
    canceled_order_count: int
    expired_order_count: int
    currently_locked: str
    total_locked: str
    average_order_size: int
    ignored_tokens: List[str]
    executed_amount_in: str
    executed_received: str
    executed_amount_out_min: str
    received_increase_percentage: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "order_count": self.order_count,
            "open_order_count": self.open_order_count,
            "executed_order_count": self.executed_order_count,
            "canceled_order_count": self.canceled_order_count,
            "expired_order_count": self.expired_order_count,
            "currently_locked": self.currently_locked,
            "total_locked": self.total_locked,
            "average_order_size": self.average_order_size,
            "ignored_tokens": self.ignored_tokens,
            "executed": {
                "amount_in": self.executed_amount_in,
                "received": self.executed_received,
                "amount_out_min": self.executed_amount_out_min,
                "received_increase_percentage": self.received_increase_percentage,
            },
        }


class OrderStatsBuilder:
    """Aggregates only fully committed, non-blacklisted valuations.

    A missing valuation excludes an order from a figure; it is never counted
    as zero.
    """

    def __init__(self, *, repository, blacklist: BlacklistRegistry) -> None:
        self._repository = repository
        self._blacklist = blacklist

    def _valid(self, orders: Iterable[Order]) -> List[Order]:
        return [order for order in orders if not self._blacklist.is_order_excluded(order)]

    async def executed_orders(self) -> List[Order]:
        orders = await self._repository.fetch_orders(statuses=[OrderStatus.CLOSED])
        return [order for order in self._valid(orders) if is_fully_enriched(order)]

    async def defect_orders(self) -> List[Order]:
        """Closed orders still lacking the valuations needed for statistics."""
        orders = await self._repository.fetch_orders(statuses=[OrderStatus.CLOSED])
        return [order for order in self._valid(orders) if not is_fully_enriched(order)]

    async def largest_orders(self, limit: int = LEADERBOARD_SIZE) -> List[Order]:
        return _top(await self.executed_orders(), lambda order: _executed(order, "received"), limit)

    async def biggest_saves_percentage(self, limit: int = LEADERBOARD_SIZE) -> List[Order]:
        return _top(await self.executed_orders(), lambda order: order.saved_percentage, limit)

    async def biggest_saves_usd(self, limit: int = LEADERBOARD_SIZE) -> List[Order]:
        return _top(await self.executed_orders(), lambda order: order.saved_usd, limit)

    async def biggest_open_orders(self, limit: int = LEADERBOARD_SIZE) -> List[Order]:
        orders = await self._repository.fetch_orders(statuses=[OrderStatus.OPEN])
        candidates = [
            order
            for order in self._valid(orders)
            if is_present(_created(order, "amount_in")) and is_present(_created(order, "amount_out_min"))
        ]
        return _top(candidates, lambda order: _created(order, "amount_in"), limit)

    async def latest_orders(self, limit: int = LATEST_ORDERS_SIZE) -> List[Order]:
        orders = await self._repository.fetch_orders()
        dated = [(_last_activity(order), order) for order in orders]
        dated = [(when, order) for when, order in dated if when is not None]
        dated.sort(key=lambda item: item[0], reverse=True)
        return [order for _, order in dated[:limit]]

    async def average_order_size(self) -> int:
        orders = await self.executed_orders()
        if not orders:
            return 0
        total = _sum(_executed(order, "received") for order in orders)
        return int(quantize(DECIMAL_CONTEXT.divide(total, Decimal(len(orders))), 0))

    async def token_counts(self) -> Dict[str, Dict[str, int]]:
        tokens: Dict[str, Dict[str, int]] = {}
        for order in await self._repository.fetch_orders():
            token_in = order.token_in.lower()
            token_out = order.token_out.lower()
            tokens.setdefault(token_in, {"in": 0, "out": 0})["in"] += 1
            tokens.setdefault(token_out, {"in": 0, "out": 0})["out"] += 1
        return tokens

    async def leaderboard(self) -> Dict[str, List[Order]]:
        return {
            "largest_orders": await self.largest_orders(),
            "biggest_saves_percentage": await self.biggest_saves_percentage(),
            "biggest_saves_usd": await self.biggest_saves_usd(),
        }

    async def build(self) -> OrderStats:
        orders = await self._repository.fetch_orders()
        executed = await self.executed_orders()
        open_orders = [order for order in orders if order.status is OrderStatus.OPEN]
        canceled = [order for order in orders if order.status is OrderStatus.CANCELED]
        valid = self._valid(orders)

        total_locked = _sum(_created(order, "amount_in") for order in valid)
        currently_locked = _sum(
            _created(order, "amount_in") for order in valid if order.status is OrderStatus.OPEN
        )
        executed_amount_in = _sum(_created(order, "amount_in") for order in executed)
        executed_amount_out_min = _sum(_created(order, "amount_out_min") for order in executed)
        executed_received = _sum(_executed(order, "received") for order in executed)

        increase: Optional[str] = None
        if executed_amount_out_min != 0:
            ratio = DECIMAL_CONTEXT.divide(executed_received, executed_amount_out_min)
            delta = DECIMAL_CONTEXT.subtract(DECIMAL_CONTEXT.multiply(ratio, Decimal(100)), Decimal(100))
            increase = str(quantize(delta, INCREASE_DECIMAL_PLACES))

        return OrderStats(
            order_count=len(orders),
            open_order_count=len(open_orders),
            executed_order_count=len(executed),
            canceled_order_count=len(canceled),
            expired_order_count=len(orders) - len(open_orders) - len(executed) - len(canceled),
            currently_locked=str(quantize(currently_locked, LOCKED_DECIMAL_PLACES)),
            total_locked=str(quantize(total_locked, LOCKED_DECIMAL_PLACES)),
            average_order_size=await self.average_order_size(),
            ignored_tokens=self._blacklist.tokens,
            executed_amount_in=format_decimal(executed_amount_in),
            executed_received=format_decimal(executed_received),
            executed_amount_out_min=format_decimal(executed_amount_out_min),
            received_increase_percentage=increase,
        )
