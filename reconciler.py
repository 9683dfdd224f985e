# reconciler.py
import asyncio
import logging
import time
from functools import partial
from typing import Dict, List, Optional, Protocol, Set

from enrichment.blacklist import BlacklistRegistry
from enrichment.errors import RemoteFetchFailed
from enrichment.merger import OrderSnapshotMerger, merge_status, snapshot_has
from enrichment.work_queue import RateLimitedQueue
from storage.models import Order, OrderStatus

logger = logging.getLogger(__name__)


class RemoteOrderSource(Protocol):
    async def fetch_all_orders(self) -> List[Order]: ...


class LocalOrderSource(Protocol):
    async def fetch_orders(self) -> List[Order]: ...


def order_already_populated(remote: Order, local: Optional[Order], blacklist: Optional[BlacklistRegistry] = None) -> bool:
    """True when the local record needs no further enrichment."""
    if local is None:
        return False

    status = merge_status(remote.status, local.status)
    if status is OrderStatus.CANCELED:
        return True
    if blacklist is not None and blacklist.is_order_excluded(local):
        return True

    got_created_values = snapshot_has(local.created_snapshot, "amount_in", "amount_out_min")
    if status is not OrderStatus.CLOSED:
        return got_created_values
    return got_created_values and snapshot_has(local.executed_snapshot, "amount_out_min", "received")


class OrderReconciler:
    def __init__(
        self,
        remote_source: RemoteOrderSource,
        repository: LocalOrderSource,
        merger: OrderSnapshotMerger,
        queue: RateLimitedQueue,
        blacklist: Optional[BlacklistRegistry] = None,
        *,
        batch_interval: int = 3600,
    ) -> None:
        self.remote_source = remote_source
        self.repository = repository
        self.merger = merger
        self.queue = queue
        self.blacklist = blacklist
        self.batch_interval = batch_interval
        self.last_batch_time: Optional[str] = None
        self.last_enqueued: int = 0
        self.last_error: Optional[str] = None
        self._background: Set[asyncio.Task] = set()

    def schedule_batch(self) -> asyncio.Task:
        """Run a batch in the background (API trigger, event resync)."""
        task = asyncio.create_task(self.run_batch())
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def start(self):
        """Runs a batch immediately, then every ``batch_interval`` seconds."""
        while True:
            try:
                await self.run_batch()
            except Exception as e:
                logger.exception("Error during reconciliation batch")
                self.last_error = str(e)
            logger.info("Batch scheduled. Waiting %s seconds...", self.batch_interval)
            await asyncio.sleep(self.batch_interval)

    async def run_batch(self) -> int:
        """Diff the remote order set against local state and enqueue the gaps.

        Returns how many orders were enqueued. A failed remote fetch leaves the
        local state untouched and enqueues nothing.
        """
        dropped = self.queue.clear()
        logger.info("Batch started, cleared %d queued tasks", dropped)

        try:
            remote_orders = await self.remote_source.fetch_all_orders()
        except RemoteFetchFailed as e:
            logger.error("Failed getting orders from the subgraph: %s", e)
            self.last_error = str(e)
            return 0

        local_orders = await self.repository.fetch_orders()

        local_by_id: Dict[str, Order] = {order.id.lower(): order for order in local_orders}

        enqueued = 0
        for order in remote_orders:
            local = local_by_id.get(order.id.lower())
            if order_already_populated(order, local, self.blacklist):
                continue
            self.queue.enqueue(partial(self.merger.sync_order, order))
            enqueued += 1

        self.last_batch_time = time.strftime('%Y-%m-%d %H:%M:%S')
        self.last_enqueued = enqueued
        self.last_error = None
        logger.info(
            "Batch finished: %d remote orders, %d local, %d enqueued",
            len(remote_orders),
            len(local_orders),
            enqueued,
        )
        return enqueued

    def queue_state(self) -> dict:
        state = self.queue.state()
        state["last_batch_time"] = self.last_batch_time
        state["last_enqueued"] = self.last_enqueued
        state["last_error"] = self.last_error
        return state
