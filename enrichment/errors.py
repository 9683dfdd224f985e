"""Failure taxonomy for the order enrichment pipeline.

None of these are fatal to the process. Valuation failures leave the snapshot
field unresolved so the next reconciliation pass retries it; fetch and write
failures are logged and recovered on the next scheduled batch.
"""
from __future__ import annotations


class EnrichmentError(Exception):
    """Base class for recoverable pipeline failures."""


class ValuationError(EnrichmentError):
    """A USD valuation could not be resolved."""

    def __init__(self, message: str, *, token: str | None = None, block_number: str | None = None) -> None:
        super().__init__(message)
        self.token = token
        self.block_number = block_number


class BlacklistedToken(ValuationError):
    """Policy rejection; the order side stays permanently unenriched."""


class PriceUnavailable(ValuationError):
    """The price source had no USD price for the token at the block."""


class DecimalsLookupFailed(ValuationError):
    """The token's decimal precision could not be read on-chain."""


class InvalidValuationInput(ValuationError):
    """Block number or raw amount is not a valid integer string."""


class RemoteFetchFailed(EnrichmentError):
    """The remote order source could not be paged through completely."""


class PersistenceWriteFailed(EnrichmentError):
    """An order record could not be written to the store."""
