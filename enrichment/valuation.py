"""Resolve raw token amounts into USD at a given block height."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Protocol

from enrichment.amounts import DECIMAL_CONTEXT, from_base_units, is_integer_string
from enrichment.blacklist import BlacklistRegistry
from enrichment.errors import (
    BlacklistedToken,
    DecimalsLookupFailed,
    InvalidValuationInput,
    PriceUnavailable,
)

logger = logging.getLogger(__name__)


class PriceSource(Protocol):
    async def get_unit_price_usd(self, token_address: str, block_number: str) -> Optional[Decimal]: ...


class TokenMetadataSource(Protocol):
    async def get_decimals(self, token_address: str) -> int: ...


@dataclass(frozen=True, slots=True)
class Valuation:
    usd_amount: Decimal
    unit_price: Decimal


class ValuationResolver:
    def __init__(
        self,
        price_source: PriceSource,
        token_metadata: TokenMetadataSource,
        blacklist: BlacklistRegistry,
    ) -> None:
        self._prices = price_source
        self._metadata = token_metadata
        self._blacklist = blacklist

    async def resolve(self, token: str, block_number: str, raw_amount: str) -> Valuation:
        """Value ``raw_amount`` of ``token`` in USD at ``block_number``.

        Raises a ``ValuationError`` subclass when the valuation cannot be
        produced; callers treat that as "still missing" and retry later.
        """
        block_number = str(block_number) if block_number is not None else ""
        if not is_integer_string(block_number, allow_zero=False):
            raise InvalidValuationInput(
                f"Block number must be a positive integer, got {block_number!r}",
                token=token,
                block_number=block_number,
            )
        if not is_integer_string(raw_amount, allow_zero=True):
            raise InvalidValuationInput(
                f"Raw amount must be a non-negative integer, got {raw_amount!r}",
                token=token,
                block_number=block_number,
            )

        if self._blacklist.is_token_blacklisted(token):
            raise BlacklistedToken(f"Token {token} is blacklisted", token=token, block_number=block_number)

        unit_price = await self._prices.get_unit_price_usd(token, block_number)
        if unit_price is None or unit_price == 0:
            raise PriceUnavailable(
                f"No USD price for {token} at block {block_number}",
                token=token,
                block_number=block_number,
            )

        try:
            decimals = await self._metadata.get_decimals(token)
        except Exception as exc:
            raise DecimalsLookupFailed(
                f"Could not read decimals for {token}: {exc}",
                token=token,
                block_number=block_number,
            ) from exc

        quantity = from_base_units(raw_amount, decimals)
        usd_amount = DECIMAL_CONTEXT.multiply(quantity, unit_price)
        logger.debug("Resolved %s of %s at block %s to %s USD", raw_amount, token, block_number, usd_amount)
        return Valuation(usd_amount=usd_amount, unit_price=unit_price)
