from unittest.mock import AsyncMock, MagicMock

import pytest

from enrichment.blacklist import BlacklistRegistry
from enrichment.errors import RemoteFetchFailed
from reconciler import OrderReconciler, order_already_populated
from storage.models import Order, OrderStatus, ValuationSnapshot

FULL_CREATED = ValuationSnapshot(amount_in="10", amount_out_min="9")
FULL_EXECUTED = ValuationSnapshot(amount_out_min="9.5", received="11")


def _order(order_id, status=OrderStatus.OPEN, **kwargs):
    return Order(
        id=order_id,
        creator="0xcreator",
        token_in="0xin",
        token_out="0xout",
        amount_in="1000",
        amount_out_min="900",
        status=status,
        **kwargs,
    )


class FakeRemote:
    def __init__(self, orders=None, error=None):
        self.orders = orders or []
        self.error = error

    async def fetch_all_orders(self):
        if self.error:
            raise self.error
        return list(self.orders)


class FakeLocal:
    def __init__(self, orders=()):
        self.orders = list(orders)

    async def fetch_orders(self):
        return list(self.orders)


def _reconciler(remote, local, blacklist=None):
    queue = MagicMock()
    queue.clear.return_value = 0
    merger = MagicMock()
    merger.sync_order = AsyncMock()
    return OrderReconciler(remote, local, merger, queue, blacklist), queue


def test_populated_rules():
    assert not order_already_populated(_order("0x1"), None)

    open_full = _order("0x1", created_snapshot=FULL_CREATED)
    assert order_already_populated(_order("0x1"), open_full)

    open_partial = _order("0x1", created_snapshot=ValuationSnapshot(amount_in="10"))
    assert not order_already_populated(_order("0x1"), open_partial)

    zero_valued = _order("0x1", created_snapshot=ValuationSnapshot(amount_in="10", amount_out_min="0"))
    assert not order_already_populated(_order("0x1"), zero_valued)

    canceled = _order("0x1", status=OrderStatus.CANCELED)
    assert order_already_populated(_order("0x1"), canceled)
    assert order_already_populated(_order("0x1", status=OrderStatus.CANCELED), _order("0x1"))

    closed_missing_executed = _order("0x1", status=OrderStatus.CLOSED, created_snapshot=FULL_CREATED)
    assert not order_already_populated(_order("0x1", status=OrderStatus.CLOSED), closed_missing_executed)

    closed_full = _order(
        "0x1", status=OrderStatus.CLOSED, created_snapshot=FULL_CREATED, executed_snapshot=FULL_EXECUTED
    )
    assert order_already_populated(_order("0x1", status=OrderStatus.CLOSED), closed_full)

    # Remote just executed, local still open with created values only.
    assert not order_already_populated(_order("0x1", status=OrderStatus.CLOSED), open_full)


def test_blacklisted_orders_count_as_populated():
    blacklist = BlacklistRegistry(tokens=["0xOUT"])
    assert order_already_populated(_order("0x1"), _order("0x1"), blacklist)


@pytest.mark.asyncio
async def test_run_batch_enqueues_only_unpopulated_orders():
    remote = FakeRemote(
        [
            _order("0xA"),
            _order("0xb"),
            _order("0xc", status=OrderStatus.CANCELED),
            _order("0xd"),
        ]
    )
    local = FakeLocal(
        [
            _order("0xa", created_snapshot=FULL_CREATED),
            _order("0xb", created_snapshot=ValuationSnapshot(amount_in="10")),
            _order("0xc", status=OrderStatus.CANCELED),
        ]
    )
    reconciler, queue = _reconciler(remote, local)

    enqueued = await reconciler.run_batch()

    assert enqueued == 2
    queue.clear.assert_called_once()
    jobs = [call.args[0] for call in queue.enqueue.call_args_list]
    assert [job.args[0].id for job in jobs] == ["0xb", "0xd"]
    assert reconciler.last_enqueued == 2
    assert reconciler.last_error is None
    assert reconciler.last_batch_time is not None


@pytest.mark.asyncio
async def test_run_batch_fetch_failure_enqueues_nothing():
    reconciler, queue = _reconciler(FakeRemote(error=RemoteFetchFailed("timeout")), FakeLocal())

    assert await reconciler.run_batch() == 0
    queue.enqueue.assert_not_called()
    assert reconciler.last_error == "timeout"


@pytest.mark.asyncio
async def test_new_batch_clears_previous_queue():
    reconciler, queue = _reconciler(FakeRemote([]), FakeLocal())
    queue.clear.return_value = 7

    await reconciler.run_batch()
    await reconciler.run_batch()

    assert queue.clear.call_count == 2


def test_queue_state_includes_batch_info():
    reconciler, queue = _reconciler(FakeRemote([]), FakeLocal())
    queue.state.return_value = {"size": 3}
    reconciler.last_enqueued = 3

    state = reconciler.queue_state()

    assert state == {"size": 3, "last_batch_time": None, "last_enqueued": 3, "last_error": None}


@pytest.mark.asyncio
async def test_schedule_batch_runs_in_background():
    reconciler, queue = _reconciler(FakeRemote([_order("0x1")]), FakeLocal())

    task = reconciler.schedule_batch()

    assert not task.done()
    assert await task == 1
    queue.enqueue.assert_called_once()
