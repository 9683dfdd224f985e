#!/usr/bin/env python3
"""Historical USD token prices from the DEX exchange subgraph."""
from __future__ import annotations

import asyncio
import logging
from decimal import Decimal, InvalidOperation
from typing import Dict, Optional, Tuple

import aiohttp

from constants import PRICE_SUBGRAPH_URL
from services.subgraph_client import graphql_request

logger = logging.getLogger(__name__)

TOKEN_PRICE_QUERY = """
query getTokenPrice($token: ID!, $block: Int) {
  token(id: $token, block: { number: $block }) {
    derivedUSD
  }
}
"""


class SubgraphPriceClient:
    """Looks up ``derivedUSD`` for a token at a given block.

    Successful lookups are memoised per (token, block): historical prices do
    not change, so repeated valuations of the same block stay off the network.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        *,
        url: str = PRICE_SUBGRAPH_URL,
        rate_limit_delay: float = 0.0,
    ) -> None:
        self._session = session
        self._url = url
        self._cache: Dict[Tuple[str, int], Decimal] = {}
        self._rate_limit_delay = rate_limit_delay
        self._last_request_ts: float = 0.0
        self._lock = asyncio.Lock()

    async def _wait_for_rate_limit(self) -> None:
        async with self._lock:
            now = asyncio.get_running_loop().time()
            elapsed = now - self._last_request_ts
            if elapsed < self._rate_limit_delay:
                await asyncio.sleep(self._rate_limit_delay - elapsed)
            self._last_request_ts = asyncio.get_running_loop().time()

    async def get_unit_price_usd(self, token_address: str, block_number: str) -> Optional[Decimal]:
        key = (token_address.lower(), int(block_number))
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        await self._wait_for_rate_limit()
        try:
            data = await graphql_request(
                self._session,
                self._url,
                TOKEN_PRICE_QUERY,
                {"token": key[0], "block": key[1]},
            )
        except (aiohttp.ClientError, TimeoutError, ValueError) as exc:
            logger.error("Price lookup for %s at block %s failed: %s", token_address, block_number, exc)
            return None

        token = data.get("token")
        if not token or token.get("derivedUSD") in (None, ""):
            logger.warning("No price for %s at block %s", token_address, block_number)
            return None
        try:
            price = Decimal(str(token["derivedUSD"]))
        except InvalidOperation:
            logger.error("Unparseable price %r for %s", token["derivedUSD"], token_address)
            return None

        self._cache[key] = price
        return price
