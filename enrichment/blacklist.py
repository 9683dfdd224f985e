"""Registry of banned tokens and suppressed orders."""
from __future__ import annotations

import logging
from typing import Iterable, Optional, Protocol

from constants import BLACKLISTED_TOKENS
from storage.models import Order

logger = logging.getLogger(__name__)


class IgnoredOrderSource(Protocol):
    async def fetch_ignored_order_ids(self) -> list[str]: ...


def _normalise(value: str) -> str:
    return value.strip().lower()


class BlacklistRegistry:
    """In-memory blacklist shared by the merger, the reports and the API.

    All lookups are case-insensitive. Mutations are idempotent.
    """

    def __init__(self, tokens: Optional[Iterable[str]] = None, orders: Optional[Iterable[str]] = None) -> None:
        seed = BLACKLISTED_TOKENS if tokens is None else tokens
        self._tokens: set[str] = {_normalise(token) for token in seed if token}
        self._orders: set[str] = {_normalise(order_id) for order_id in orders or () if order_id}

    async def load(self, source: IgnoredOrderSource) -> int:
        """Seed suppressed orders from records already flagged as ignored."""
        order_ids = await source.fetch_ignored_order_ids()
        for order_id in order_ids:
            self.suppress_order(order_id)
        logger.info("Loaded %d ignored orders into the blacklist", len(order_ids))
        return len(order_ids)

    @property
    def tokens(self) -> list[str]:
        return sorted(self._tokens)

    @property
    def orders(self) -> list[str]:
        return sorted(self._orders)

    def is_token_blacklisted(self, token: Optional[str]) -> bool:
        if not token:
            return False
        return _normalise(token) in self._tokens

    def blacklist_token(self, token: str) -> None:
        self._tokens.add(_normalise(token))

    def unblacklist_token(self, token: str) -> None:
        self._tokens.discard(_normalise(token))

    def is_order_suppressed(self, order_id: Optional[str]) -> bool:
        if not order_id:
            return False
        return _normalise(order_id) in self._orders

    def suppress_order(self, order_id: str) -> None:
        self._orders.add(_normalise(order_id))

    def unsuppress_order(self, order_id: str) -> None:
        self._orders.discard(_normalise(order_id))

    def is_order_excluded(self, order: Order) -> bool:
        """True when either token is blacklisted or the order itself is suppressed."""
        if self.is_token_blacklisted(order.token_in):
            logger.debug("Bad token in %s for order %s", order.token_in, order.id)
            return True
        if self.is_token_blacklisted(order.token_out):
            logger.debug("Bad token out %s for order %s", order.token_out, order.id)
            return True
        if order.is_ignored or self.is_order_suppressed(order.id):
            logger.debug("Suppressed order %s", order.id)
            return True
        return False
