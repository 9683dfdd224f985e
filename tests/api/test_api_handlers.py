from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from aiohttp.test_utils import TestClient, TestServer

from api.app import create_app
from enrichment.blacklist import BlacklistRegistry
from reports.order_stats import OrderStatsBuilder
from storage import Order, OrderStatus, SQLiteRepository, ValuationSnapshot


def _closed_order(order_id="0xabc"):
    return Order(
        id=order_id,
        creator="0xcreator",
        token_in="0xin",
        token_out="0xout",
        amount_in="1000",
        amount_out_min="900",
        status=OrderStatus.CLOSED,
        created_snapshot=ValuationSnapshot(amount_in="100", amount_out_min="90"),
        executed_snapshot=ValuationSnapshot(amount_out_min="95", received="110"),
        saved_percentage="10.00000",
        saved_usd="10",
    )


@pytest_asyncio.fixture
async def api(tmp_path):
    repository = SQLiteRepository(db_path=tmp_path / "api.db")
    await repository.insert_order(_closed_order())
    blacklist = BlacklistRegistry(tokens=[])
    reconciler = MagicMock()
    reconciler.queue_state.return_value = {"size": 0, "last_enqueued": 4}
    app = create_app(
        repository=repository,
        reconciler=reconciler,
        stats_builder=OrderStatsBuilder(repository=repository, blacklist=blacklist),
        blacklist=blacklist,
    )
    client = TestClient(TestServer(app))
    await client.start_server()
    try:
        yield client, repository, reconciler, blacklist
    finally:
        await client.close()
        await repository.close()


@pytest.mark.asyncio
async def test_orders_endpoints(api):
    client, _, _, _ = api

    response = await client.get("/orders")
    assert response.status == 200
    orders = await response.json()
    assert [order["id"] for order in orders] == ["0xabc"]
    assert orders[0]["status"] == "Closed"
    assert orders[0]["created_snapshot"]["amounts"]["amount_in"] == "100"

    response = await client.get("/orders/0xABC")
    assert response.status == 200
    assert (await response.json())["order"]["saved_usd"] == "10"

    response = await client.get("/orders/0xmissing")
    assert response.status == 404


@pytest.mark.asyncio
async def test_batch_and_queue_endpoints(api):
    client, _, reconciler, _ = api

    response = await client.get("/batch")
    assert response.status == 200
    assert await response.text() == "Batch started"
    reconciler.schedule_batch.assert_called_once()

    response = await client.get("/queue")
    assert await response.json() == {"size": 0, "last_enqueued": 4}


@pytest.mark.asyncio
async def test_report_endpoints(api):
    client, _, _, _ = api

    stats = await (await client.get("/stats")).json()
    assert stats["executed_order_count"] == 1
    assert stats["executed"]["received_increase_percentage"] == "15.7895"

    executed = await (await client.get("/executed")).json()
    assert [order["id"] for order in executed] == ["0xabc"]

    board = await (await client.get("/leaderboard")).json()
    assert set(board) == {"largest_orders", "biggest_saves_percentage", "biggest_saves_usd"}

    tokens = await (await client.get("/tokens")).json()
    assert tokens == {"tokens": {"0xin": {"in": 1, "out": 0}, "0xout": {"in": 0, "out": 1}}}

    assert await (await client.get("/defects")).json() == []
    assert await (await client.get("/open")).json() == []
    assert (await client.get("/latest")).status == 200


@pytest.mark.asyncio
async def test_blacklist_mutations_affect_reports_and_persist(api):
    client, repository, _, blacklist = api

    response = await client.post("/blacklist/tokens/0xOUT")
    assert (await response.json())["tokens"] == ["0xout"]
    assert await (await client.get("/executed")).json() == []

    await client.delete("/blacklist/tokens/0xout")
    assert blacklist.tokens == []

    response = await client.post("/blacklist/orders/0xabc")
    assert (await response.json())["orders"] == ["0xabc"]
    assert (await repository.fetch_order("0xabc")).is_ignored is True
    assert await (await client.get("/executed")).json() == []

    await client.delete("/blacklist/orders/0xabc")
    assert (await repository.fetch_order("0xabc")).is_ignored is False
    assert len(await (await client.get("/executed")).json()) == 1
