"""Idempotent merge of a remote order record into the local snapshot."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any, Optional, Protocol

from enrichment.amounts import format_decimal, is_present
from enrichment.blacklist import BlacklistRegistry
from enrichment.errors import BlacklistedToken, PersistenceWriteFailed, ValuationError
from enrichment.savings import compute_savings
from enrichment.valuation import ValuationResolver
from storage.models import REMOTE_FIELDS, Order, OrderStatus, ValuationSnapshot

logger = logging.getLogger(__name__)

CREATED_SIDE = "created"
EXECUTED_SIDE = "executed"


class OrderStore(Protocol):
    async def fetch_order(self, order_id: str) -> Optional[Order]: ...

    async def insert_order(self, order: Order) -> None: ...

    async def update_order(self, order_id: str, changes: dict[str, Any]) -> bool: ...


def merge_status(remote: OrderStatus, local: Optional[OrderStatus]) -> OrderStatus:
    """Closed and canceled are terminal; a lagging remote cannot reopen them."""
    if local is not None and local.is_terminal:
        return local
    return remote


def snapshot_has(snapshot: Optional[ValuationSnapshot], *field_names: str) -> bool:
    if snapshot is None:
        return False
    return all(is_present(getattr(snapshot, name)) for name in field_names)


class OrderSnapshotMerger:
    """Decides which valuations an order still needs, resolves them and
    persists the merged record.

    Valuation failures never abort a merge: whatever was resolved is kept and
    the missing fields are retried on the next reconciliation pass.
    """

    def __init__(
        self,
        repository: OrderStore,
        resolver: ValuationResolver,
        blacklist: BlacklistRegistry,
    ) -> None:
        self._repository = repository
        self._resolver = resolver
        self._blacklist = blacklist

    async def sync_order(self, remote: Order) -> Order:
        """Queue task: read the current local record, then reconcile."""
        local = await self._repository.fetch_order(remote.id)
        return await self.reconcile_order(remote, local)

    async def reconcile_order(self, remote: Order, local: Optional[Order]) -> Order:
        merged = await self.merge(remote, local)
        try:
            if local is None:
                await self._repository.insert_order(merged)
                logger.info("Order %s inserted", merged.id)
            else:
                await self._repository.update_order(local.id, _persisted_changes(merged))
                logger.info("Order %s updated", merged.id)
        except PersistenceWriteFailed as exc:
            logger.error("Persisting order %s failed, will retry next batch: %s", merged.id, exc)
        return merged

    async def merge(self, remote: Order, local: Optional[Order]) -> Order:
        order = self._apply_remote(remote, local)

        if self._blacklist.is_order_excluded(order):
            logger.info("Order %s is blacklisted, skipping enrichment", order.id)
            return replace(
                order,
                created_snapshot=None,
                executed_snapshot=None,
                saved_percentage=None,
                saved_usd=None,
            )

        created, executed = await asyncio.gather(
            self._resolve_side(order, CREATED_SIDE),
            self._resolve_side(order, EXECUTED_SIDE),
        )
        order = replace(order, created_snapshot=created, executed_snapshot=executed)

        complete = snapshot_has(created, "amount_in", "amount_out_min") and snapshot_has(
            executed, "amount_out_min", "received"
        )
        if complete and not (order.saved_percentage and order.saved_usd):
            savings = compute_savings(created, executed)
            if savings is not None:
                order = replace(order, saved_percentage=savings.percentage, saved_usd=savings.amount)
        return order

    def _apply_remote(self, remote: Order, local: Optional[Order]) -> Order:
        if local is None:
            return remote
        changes: dict[str, Any] = {}
        for name in REMOTE_FIELDS:
            if name == "id":
                continue
            value = getattr(remote, name)
            if value is not None and value != "":
                changes[name] = value
        changes["status"] = merge_status(remote.status, local.status)
        return replace(local, **changes)

    async def _resolve_side(self, order: Order, side: str) -> Optional[ValuationSnapshot]:
        if side == CREATED_SIDE:
            block_number = order.created_block_number
            current = order.created_snapshot
        else:
            block_number = order.executed_block_number
            current = order.executed_snapshot

        if not block_number:
            return current

        snapshot = replace(current) if current is not None else ValuationSnapshot()
        try:
            if side == CREATED_SIDE:
                await self._fill_created(order, block_number, snapshot)
            else:
                await self._fill_executed(order, block_number, snapshot)
        except BlacklistedToken:
            logger.info("Order %s hit a blacklisted token on the %s side", order.id, side)
            return None
        return snapshot

    async def _fill_created(self, order: Order, block_number: str, snapshot: ValuationSnapshot) -> None:
        if snapshot_has(snapshot, "amount_in", "amount_out_min"):
            return
        if not is_present(snapshot.amount_in):
            valuation = await self._try_resolve(order, order.token_in, block_number, order.amount_in)
            if valuation is not None:
                snapshot.amount_in = format_decimal(valuation.usd_amount)
                snapshot.token_in_price = format_decimal(valuation.unit_price)
        if not is_present(snapshot.amount_out_min):
            valuation = await self._try_resolve(order, order.token_out, block_number, order.amount_out_min)
            if valuation is not None:
                snapshot.amount_out_min = format_decimal(valuation.usd_amount)
                snapshot.token_out_price = format_decimal(valuation.unit_price)

    async def _fill_executed(self, order: Order, block_number: str, snapshot: ValuationSnapshot) -> None:
        needs_received = bool(order.received_amount) and not is_present(snapshot.received)
        if not needs_received and is_present(snapshot.amount_out_min):
            return
        if not is_present(snapshot.amount_out_min):
            valuation = await self._try_resolve(order, order.token_out, block_number, order.amount_out_min)
            if valuation is not None:
                snapshot.amount_out_min = format_decimal(valuation.usd_amount)
                snapshot.token_out_price = format_decimal(valuation.unit_price)
        if needs_received:
            valuation = await self._try_resolve(order, order.token_out, block_number, order.received_amount)
            if valuation is not None:
                snapshot.received = format_decimal(valuation.usd_amount)
                snapshot.token_out_price = format_decimal(valuation.unit_price)

    async def _try_resolve(self, order: Order, token: str, block_number: str, raw_amount: Optional[str]):
        try:
            return await self._resolver.resolve(token, block_number, raw_amount or "")
        except BlacklistedToken:
            raise
        except ValuationError as exc:
            logger.warning("Order %s: %s", order.id, exc)
            return None


def _persisted_changes(order: Order) -> dict[str, Any]:
    changes = {name: getattr(order, name) for name in REMOTE_FIELDS if name != "id"}
    changes["created_snapshot"] = order.created_snapshot
    changes["executed_snapshot"] = order.executed_snapshot
    changes["saved_percentage"] = order.saved_percentage
    changes["saved_usd"] = order.saved_usd
    return changes
