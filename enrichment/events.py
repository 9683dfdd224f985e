"""Translate live order book events into merges and direct updates."""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable, Optional

from enrichment.errors import PersistenceWriteFailed
from enrichment.merger import OrderSnapshotMerger, OrderStore
from storage.models import Order, OrderStatus

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class OrderPlacedEvent:
    order_id: str
    token_in: str
    token_out: str
    amount_in: str
    amount_out_min: str
    creator: str
    created_timestamp: str
    block_number: str
    transaction_hash: str


@dataclass(slots=True)
class OrderCanceledEvent:
    order_id: str
    timestamp: str
    block_number: Optional[str] = None


@dataclass(slots=True)
class OrderExecutedEvent:
    order_id: str
    amount_out: str
    timestamp: str
    block_number: str
    transaction_hash: Optional[str] = None


class LiveEventAdapter:
    def __init__(
        self,
        repository: OrderStore,
        merger: OrderSnapshotMerger,
        resync: Callable[[], object],
    ) -> None:
        self._repository = repository
        self._merger = merger
        self._resync = resync

    async def on_order_placed(self, event: OrderPlacedEvent) -> Optional[Order]:
        logger.info("Order placed - %s", event.order_id)
        order = Order(
            id=event.order_id,
            creator=event.creator,
            token_in=event.token_in,
            token_out=event.token_out,
            amount_in=event.amount_in,
            amount_out_min=event.amount_out_min,
            status=OrderStatus.OPEN,
            created_timestamp=event.created_timestamp,
            created_block_number=event.block_number,
            created_transaction_hash=event.transaction_hash,
        )
        return await self._merger.sync_order(order)

    async def on_order_canceled(self, event: OrderCanceledEvent) -> bool:
        logger.info("Order canceled - %s", event.order_id)
        local = await self._repository.fetch_order(event.order_id)
        if local is None:
            logger.error("Could not update order %s", event.order_id)
            return False
        if local.status.is_terminal:
            logger.warning("Order %s is already %s, ignoring cancel", local.id, local.status.value)
            return False
        changes = {"status": OrderStatus.CANCELED, "canceled_timestamp": event.timestamp}
        if event.block_number:
            changes["canceled_block_number"] = event.block_number
        try:
            return await self._repository.update_order(local.id, changes)
        except PersistenceWriteFailed as exc:
            logger.error("Cancel of order %s not persisted: %s", local.id, exc)
            return False

    async def on_order_executed(self, event: OrderExecutedEvent) -> Optional[Order]:
        logger.info("Order executed - %s", event.order_id)
        local = await self._repository.fetch_order(event.order_id)
        if local is None:
            logger.info("Order %s unknown locally, starting full resync", event.order_id)
            self._resync()
            return None
        if local.status.is_terminal:
            logger.warning("Order %s is already %s, ignoring execution", local.id, local.status.value)
            return None

        executed = replace(
            local,
            status=OrderStatus.CLOSED,
            received_amount=event.amount_out,
            executed_block_number=event.block_number,
            executed_timestamp=event.timestamp,
            executed_transaction_hash=event.transaction_hash or local.executed_transaction_hash,
        )
        return await self._merger.reconcile_order(executed, local)
