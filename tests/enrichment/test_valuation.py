from decimal import Decimal

import pytest

from enrichment.blacklist import BlacklistRegistry
from enrichment.errors import (
    BlacklistedToken,
    DecimalsLookupFailed,
    InvalidValuationInput,
    PriceUnavailable,
)
from enrichment.valuation import ValuationResolver

TOKEN = "0xaaaa000000000000000000000000000000000001"
BANNED = "0xdead000000000000000000000000000000000000"


class FakePrices:
    def __init__(self, price):
        self.price = price
        self.calls = []

    async def get_unit_price_usd(self, token_address, block_number):
        self.calls.append((token_address, block_number))
        return self.price


class FakeMetadata:
    def __init__(self, decimals=18, error=None):
        self.decimals = decimals
        self.error = error
        self.calls = 0

    async def get_decimals(self, token_address):
        self.calls += 1
        if self.error:
            raise self.error
        return self.decimals


def _resolver(price=Decimal("2"), decimals=18, error=None):
    prices = FakePrices(price)
    metadata = FakeMetadata(decimals, error)
    resolver = ValuationResolver(prices, metadata, BlacklistRegistry(tokens=[BANNED]))
    return resolver, prices, metadata


@pytest.mark.asyncio
async def test_resolve_scales_by_decimals_and_multiplies_price():
    resolver, prices, _ = _resolver(price=Decimal("1.25"), decimals=6)

    valuation = await resolver.resolve(TOKEN, "123", "2500000")

    assert valuation.usd_amount == Decimal("3.125")
    assert valuation.unit_price == Decimal("1.25")
    assert prices.calls == [(TOKEN, "123")]


@pytest.mark.asyncio
async def test_resolve_keeps_full_precision_for_large_amounts():
    resolver, _, _ = _resolver(price=Decimal("0.000001"), decimals=18)
    raw = str(10**30 + 7)

    valuation = await resolver.resolve(TOKEN, "1", raw)

    assert valuation.usd_amount == Decimal("1000000." + "0" * 23 + "7")


@pytest.mark.asyncio
async def test_blacklisted_token_never_reaches_price_source():
    resolver, prices, metadata = _resolver()

    with pytest.raises(BlacklistedToken):
        await resolver.resolve(BANNED.upper().replace("0X", "0x"), "100", "1")

    assert prices.calls == []
    assert metadata.calls == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("price", [None, Decimal(0)])
async def test_missing_or_zero_price_is_unavailable(price):
    resolver, _, metadata = _resolver(price=price)

    with pytest.raises(PriceUnavailable) as excinfo:
        await resolver.resolve(TOKEN, "100", "1")

    assert excinfo.value.token == TOKEN
    assert excinfo.value.block_number == "100"
    assert metadata.calls == 0


@pytest.mark.asyncio
async def test_decimals_failure_is_wrapped():
    resolver, _, _ = _resolver(error=RuntimeError("rpc down"))

    with pytest.raises(DecimalsLookupFailed):
        await resolver.resolve(TOKEN, "100", "1")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "block_number, raw_amount",
    [("", "1"), ("0", "1"), ("12a", "1"), ("100", "-5"), ("100", "1.5"), ("100", "")],
)
async def test_invalid_inputs_rejected_before_any_lookup(block_number, raw_amount):
    resolver, prices, _ = _resolver()

    with pytest.raises(InvalidValuationInput):
        await resolver.resolve(TOKEN, block_number, raw_amount)

    assert prices.calls == []


@pytest.mark.asyncio
async def test_zero_raw_amount_is_valid():
    resolver, _, _ = _resolver()

    valuation = await resolver.resolve(TOKEN, "100", "0")

    assert valuation.usd_amount == 0
