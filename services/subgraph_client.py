#!/usr/bin/env python3
"""Paginated reader for the order book subgraph."""
from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Dict, List, Optional

import aiohttp

from constants import ORDERS_SUBGRAPH_URL, SUBGRAPH_PAGE_SIZE
from enrichment.errors import RemoteFetchFailed
from storage.models import Order

logger = logging.getLogger(__name__)

ORDERS_QUERY = """
query getOrders($lastID: String, $first: Int) {
  orders(first: $first, where: { id_gt: $lastID }, orderBy: id, orderDirection: asc) {
    id
    canceledTimestamp
    createdTimestamp
    executedTimestamp
    status
    creator
    tokenIn
    tokenOut
    amountIn
    amountOutMin
    recievedAmount
    createdBlockNumber
    executedBlockNumber
    executedTransactionHash
    createdTransactionHash
  }
}
"""


async def graphql_request(
    session: aiohttp.ClientSession,
    url: str,
    query: str,
    variables: Dict[str, Any],
    timeout: int = 30,
) -> Dict[str, Any]:
    """POST a GraphQL query and return its ``data`` object.

    Raises ``aiohttp.ClientError`` on transport failures and ``ValueError``
    when the endpoint answers with GraphQL errors.
    """
    payload = {"query": query, "variables": variables}
    async with session.post(url, json=payload, timeout=timeout) as response:
        response.raise_for_status()
        body = await response.json()
    if body.get("errors"):
        raise ValueError(f"GraphQL errors: {body['errors']}")
    return body.get("data") or {}


class SubgraphOrderClient:
    def __init__(
        self,
        session: aiohttp.ClientSession,
        *,
        url: str = ORDERS_SUBGRAPH_URL,
        page_size: int = SUBGRAPH_PAGE_SIZE,
    ) -> None:
        self._session = session
        self._url = url
        self._page_size = page_size

    async def fetch_page(self, last_id: str = "") -> List[Dict[str, Any]]:
        data = await graphql_request(
            self._session,
            self._url,
            ORDERS_QUERY,
            {"lastID": last_id, "first": self._page_size},
        )
        return list(data.get("orders") or [])

    async def iter_pages(self) -> AsyncIterator[List[Dict[str, Any]]]:
        """Yield pages in id order until the source returns an empty page.

        Each call starts again from the beginning of the collection.
        """
        last_id: Optional[str] = ""
        while True:
            try:
                page = await self.fetch_page(last_id)
            except (aiohttp.ClientError, TimeoutError, ValueError) as exc:
                raise RemoteFetchFailed(f"Order page after {last_id!r} failed: {exc}") from exc
            if not page:
                return
            yield page
            last_id = page[-1]["id"]

    async def fetch_all_orders(self) -> List[Order]:
        orders: List[Order] = []
        async for page in self.iter_pages():
            orders.extend(Order.from_subgraph(entity) for entity in page)
        logger.info("Fetched %d orders from the subgraph", len(orders))
        return orders
