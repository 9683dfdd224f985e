#!/usr/bin/env python3
"""ERC-20 metadata reads through web3."""
from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional

from web3 import Web3

from constants import ERC20_DECIMALS_ABI

logger = logging.getLogger(__name__)


class TokenMetadataClient:
    """Reads ``decimals()`` for ERC-20 tokens, caching per address."""

    def __init__(self, rpc_url: Optional[str] = None, *, web3: Optional[Web3] = None) -> None:
        if web3 is None:
            if not rpc_url:
                raise ValueError("rpc_url or web3 instance required")
            web3 = Web3(Web3.HTTPProvider(rpc_url))
        self.web3 = web3
        self._decimals_cache: Dict[str, int] = {}

    async def get_decimals(self, token_address: str) -> int:
        key = token_address.lower()
        cached = self._decimals_cache.get(key)
        if cached is not None:
            return cached
        decimals = await asyncio.to_thread(self._get_decimals_sync, token_address)
        self._decimals_cache[key] = decimals
        return decimals

    def _get_decimals_sync(self, token_address: str) -> int:
        checksum = self.web3.to_checksum_address(token_address)
        contract = self.web3.eth.contract(address=checksum, abi=ERC20_DECIMALS_ABI)
        decimals = int(contract.functions.decimals().call())
        logger.debug("Token %s has %d decimals", checksum, decimals)
        return decimals
