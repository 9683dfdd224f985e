"""Dataclasses representing stored limit order records."""
from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from enum import Enum
from typing import Any, Optional

from constants import ORDER_STATUS_CANCELED, ORDER_STATUS_CLOSED, ORDER_STATUS_OPEN


class OrderStatus(str, Enum):
    OPEN = ORDER_STATUS_OPEN
    CLOSED = ORDER_STATUS_CLOSED
    CANCELED = ORDER_STATUS_CANCELED

    @property
    def is_terminal(self) -> bool:
        return self is not OrderStatus.OPEN


@dataclass(slots=True)
class ValuationSnapshot:
    """USD valuation of an order's amounts at one block height."""
    amount_in: Optional[str] = None
    amount_out_min: Optional[str] = None
    received: Optional[str] = None
    token_in_price: Optional[str] = None
    token_out_price: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "amounts": {
                "amount_in": self.amount_in,
                "amount_out_min": self.amount_out_min,
                "received": self.received,
            },
            "prices": {
                "token_in": self.token_in_price,
                "token_out": self.token_out_price,
            },
        }

    @classmethod
    def from_dict(cls, payload: Optional[dict]) -> Optional["ValuationSnapshot"]:
        if not payload:
            return None
        amounts = payload.get("amounts") or {}
        prices = payload.get("prices") or {}
        return cls(
            amount_in=amounts.get("amount_in"),
            amount_out_min=amounts.get("amount_out_min"),
            received=amounts.get("received"),
            token_in_price=prices.get("token_in"),
            token_out_price=prices.get("token_out"),
        )


@dataclass(slots=True)
class Order:
    id: str
    creator: str
    token_in: str
    token_out: str
    amount_in: str
    amount_out_min: str
    status: OrderStatus
    created_timestamp: Optional[str] = None
    created_block_number: Optional[str] = None
    created_transaction_hash: Optional[str] = None
    executed_timestamp: Optional[str] = None
    executed_block_number: Optional[str] = None
    executed_transaction_hash: Optional[str] = None
    canceled_timestamp: Optional[str] = None
    canceled_block_number: Optional[str] = None
    received_amount: Optional[str] = None
    created_snapshot: Optional[ValuationSnapshot] = None
    executed_snapshot: Optional[ValuationSnapshot] = None
    saved_percentage: Optional[str] = None
    saved_usd: Optional[str] = None
    is_ignored: bool = False

    @classmethod
    def from_subgraph(cls, payload: dict[str, Any]) -> "Order":
        """Build an order from a subgraph entity (camelCase wire names)."""
        return cls(
            id=payload["id"],
            creator=payload.get("creator") or "",
            token_in=payload.get("tokenIn") or "",
            token_out=payload.get("tokenOut") or "",
            amount_in=str(payload.get("amountIn") or "0"),
            amount_out_min=str(payload.get("amountOutMin") or "0"),
            status=OrderStatus(payload.get("status") or ORDER_STATUS_OPEN),
            created_timestamp=_optional_str(payload.get("createdTimestamp")),
            created_block_number=_optional_str(payload.get("createdBlockNumber")),
            created_transaction_hash=payload.get("createdTransactionHash"),
            executed_timestamp=_optional_str(payload.get("executedTimestamp")),
            executed_block_number=_optional_str(payload.get("executedBlockNumber")),
            executed_transaction_hash=payload.get("executedTransactionHash"),
            canceled_timestamp=_optional_str(payload.get("canceledTimestamp")),
            canceled_block_number=_optional_str(payload.get("canceledBlockNumber")),
            received_amount=_optional_str(payload.get("recievedAmount")),
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        data["created_snapshot"] = self.created_snapshot.to_dict() if self.created_snapshot else None
        data["executed_snapshot"] = self.executed_snapshot.to_dict() if self.executed_snapshot else None
        return data


# Fields owned by the remote order source; everything else is derived locally.
REMOTE_FIELDS: tuple[str, ...] = tuple(
    f.name
    for f in fields(Order)
    if f.name not in {"created_snapshot", "executed_snapshot", "saved_percentage", "saved_usd", "is_ignored"}
)


def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)
