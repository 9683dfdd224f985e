#!/usr/bin/env python3
"""Polls the order book contract for placed, canceled and executed events."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from web3 import Web3

from constants import ORDER_BOOK_EVENTS_ABI
from enrichment.events import (
    LiveEventAdapter,
    OrderCanceledEvent,
    OrderExecutedEvent,
    OrderPlacedEvent,
)

logger = logging.getLogger(__name__)


def _to_hex(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return Web3.to_hex(value)
    if hasattr(value, "hex") and not isinstance(value, str):
        hexed = value.hex()
        return hexed if hexed.startswith("0x") else "0x" + hexed
    return str(value)


def placed_from_log(log: Any) -> OrderPlacedEvent:
    args = log["args"]
    return OrderPlacedEvent(
        order_id=_to_hex(args["id"]),
        token_in=args["tokenIn"],
        token_out=args["tokenOut"],
        amount_in=str(args["amountIn"]),
        amount_out_min=str(args["amountOutMin"]),
        creator=args["creator"],
        created_timestamp=str(args["createdTimestamp"]),
        block_number=str(log["blockNumber"]),
        transaction_hash=_to_hex(log["transactionHash"]),
    )


def canceled_from_log(log: Any) -> OrderCanceledEvent:
    args = log["args"]
    return OrderCanceledEvent(
        order_id=_to_hex(args["id"]),
        timestamp=str(args["timestamp"]),
        block_number=str(log["blockNumber"]),
    )


def executed_from_log(log: Any) -> OrderExecutedEvent:
    args = log["args"]
    return OrderExecutedEvent(
        order_id=_to_hex(args["id"]),
        amount_out=str(args["amountOut"]),
        timestamp=str(args["timestamp"]),
        block_number=str(log["blockNumber"]),
        transaction_hash=_to_hex(log["transactionHash"]),
    )


class ChainEventListener:
    """Turns contract logs into adapter calls, in block order."""

    def __init__(
        self,
        adapter: LiveEventAdapter,
        *,
        contract_address: str,
        rpc_url: Optional[str] = None,
        web3: Optional[Web3] = None,
        poll_interval: float = 15.0,
    ) -> None:
        if web3 is None:
            web3 = Web3(Web3.HTTPProvider(rpc_url))
        self.web3 = web3
        self._adapter = adapter
        self._contract = web3.eth.contract(
            address=web3.to_checksum_address(contract_address),
            abi=ORDER_BOOK_EVENTS_ABI,
        )
        self._poll_interval = poll_interval
        self._next_block: Optional[int] = None

    async def start(self) -> None:
        """Poll forever; errors are logged and the same range is retried."""
        while True:
            try:
                await self.poll_once()
            except Exception as exc:
                logger.error("Event poll failed: %s", exc)
            await asyncio.sleep(self._poll_interval)

    async def poll_once(self) -> int:
        latest = await asyncio.to_thread(lambda: self.web3.eth.block_number)
        if self._next_block is None:
            self._next_block = latest + 1
            logger.info("Listening for order events from block %d", self._next_block)
            return 0
        if latest < self._next_block:
            return 0

        from_block, to_block = self._next_block, latest
        logs = await asyncio.to_thread(self._collect_logs, from_block, to_block)
        for kind, log in logs:
            await self._dispatch(kind, log)
        self._next_block = to_block + 1
        return len(logs)

    def _collect_logs(self, from_block: int, to_block: int) -> list[tuple[str, Any]]:
        events = self._contract.events
        collected: list[tuple[str, Any]] = []
        for kind, event in (
            ("placed", events.OrderPlaced),
            ("canceled", events.OrderCanceled),
            ("executed", events.OrderExecuted),
        ):
            for log in event.get_logs(from_block=from_block, to_block=to_block):
                collected.append((kind, log))
        collected.sort(key=lambda item: (item[1]["blockNumber"], item[1]["logIndex"]))
        return collected

    async def _dispatch(self, kind: str, log: Any) -> None:
        if kind == "placed":
            await self._adapter.on_order_placed(placed_from_log(log))
        elif kind == "canceled":
            await self._adapter.on_order_canceled(canceled_from_log(log))
        elif kind == "executed":
            await self._adapter.on_order_executed(executed_from_log(log))
