from decimal import Decimal

import aiohttp
import pytest

from services.price_client import SubgraphPriceClient


class FakeResponse:
    def __init__(self, payload):
        self._payload = payload
        self.status = 200

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    def raise_for_status(self):
        return None

    async def json(self):
        return self._payload


class FakeSession:
    def __init__(self, responses):
        self._responses = list(responses)
        self.requests = []

    def post(self, url, json, timeout):
        self.requests.append(json)
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return FakeResponse(response)


@pytest.mark.asyncio
async def test_price_is_parsed_as_decimal_and_cached_per_block():
    session = FakeSession([
        {"data": {"token": {"derivedUSD": "1.000123456789012345678"}}},
        {"data": {"token": {"derivedUSD": "2"}}},
    ])
    client = SubgraphPriceClient(session, url="https://example.invalid")

    first = await client.get_unit_price_usd("0xABC", "100")
    again = await client.get_unit_price_usd("0xabc", "100")
    other_block = await client.get_unit_price_usd("0xabc", "101")

    assert first == Decimal("1.000123456789012345678")
    assert again == first
    assert other_block == Decimal("2")
    assert len(session.requests) == 2
    assert session.requests[0]["variables"] == {"token": "0xabc", "block": 100}


@pytest.mark.asyncio
async def test_missing_token_returns_none():
    session = FakeSession([{"data": {"token": None}}, {"data": {"token": {"derivedUSD": "3"}}}])
    client = SubgraphPriceClient(session, url="https://example.invalid")

    assert await client.get_unit_price_usd("0xabc", "100") is None
    # Misses are not cached.
    assert await client.get_unit_price_usd("0xabc", "100") == Decimal("3")


@pytest.mark.asyncio
async def test_transport_error_returns_none():
    session = FakeSession([aiohttp.ClientConnectionError("reset")])
    client = SubgraphPriceClient(session, url="https://example.invalid")

    assert await client.get_unit_price_usd("0xabc", "100") is None
