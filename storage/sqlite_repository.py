"""SQLite-backed persistence layer for limit orders and their valuations."""
from __future__ import annotations

import asyncio
import json
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Optional

from enrichment.errors import PersistenceWriteFailed
from storage.models import Order, OrderStatus, ValuationSnapshot

ISO_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

_TEXT_COLUMNS = (
    "creator",
    "token_in",
    "token_out",
    "amount_in",
    "amount_out_min",
    "created_timestamp",
    "created_block_number",
    "created_transaction_hash",
    "executed_timestamp",
    "executed_block_number",
    "executed_transaction_hash",
    "canceled_timestamp",
    "canceled_block_number",
    "received_amount",
    "saved_percentage",
    "saved_usd",
)
_SNAPSHOT_COLUMNS = ("created_snapshot", "executed_snapshot")
_UPDATABLE_COLUMNS = frozenset(_TEXT_COLUMNS + _SNAPSHOT_COLUMNS + ("status", "is_ignored"))


def _encode(column: str, value: Any) -> Any:
    if column in _SNAPSHOT_COLUMNS:
        if value is None:
            return None
        if isinstance(value, ValuationSnapshot):
            value = value.to_dict()
        return json.dumps(value, sort_keys=True)
    if column == "status":
        return OrderStatus(value).value
    if column == "is_ignored":
        return 1 if value else 0
    return value


class SQLiteRepository:
    """Provides async-friendly helpers for persisting order records."""

    def __init__(self, db_path: Path | str = Path("data/orders.db")) -> None:
        self.db_path = Path(db_path)
        if self.db_path != Path(":memory:"):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._connection = sqlite3.connect(
            str(self.db_path),
            detect_types=sqlite3.PARSE_DECLTYPES,
            check_same_thread=False,
        )
        self._connection.row_factory = sqlite3.Row
        self._configure()
        self._create_schema()

    def _configure(self) -> None:
        with self._lock:
            cursor = self._connection.cursor()
            try:
                cursor.execute("PRAGMA journal_mode=WAL;")
            except sqlite3.DatabaseError:
                pass
            cursor.close()

    def _create_schema(self) -> None:
        statements = [
            """
            CREATE TABLE IF NOT EXISTS orders (
                id TEXT PRIMARY KEY COLLATE NOCASE,
                creator TEXT NOT NULL,
                token_in TEXT NOT NULL,
                token_out TEXT NOT NULL,
                amount_in TEXT NOT NULL,
                amount_out_min TEXT NOT NULL,
                status TEXT NOT NULL,
                created_timestamp TEXT,
                created_block_number TEXT,
                created_transaction_hash TEXT,
                executed_timestamp TEXT,
                executed_block_number TEXT,
                executed_transaction_hash TEXT,
                canceled_timestamp TEXT,
                canceled_block_number TEXT,
                received_amount TEXT,
                created_snapshot TEXT,
                executed_snapshot TEXT,
                saved_percentage TEXT,
                saved_usd TEXT,
                is_ignored INTEGER NOT NULL DEFAULT 0,
                updated_at TEXT NOT NULL
            );
            """,
            """
            CREATE INDEX IF NOT EXISTS idx_orders_status
                ON orders(status);
            """,
        ]

        with self._lock:
            cursor = self._connection.cursor()
            for statement in statements:
                cursor.execute(statement)
            self._connection.commit()
            cursor.close()

    async def fetch_order(self, order_id: str) -> Optional[Order]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._fetch_order_sync, order_id)

    def _fetch_order_sync(self, order_id: str) -> Optional[Order]:
        with self._lock:
            cursor = self._connection.cursor()
            cursor.execute("SELECT * FROM orders WHERE id = ?", (order_id,))
            row = cursor.fetchone()
            cursor.close()
        if row is None:
            return None
        return self._row_to_order(row)

    async def fetch_orders(self, *, statuses: Optional[Iterable[OrderStatus]] = None) -> list[Order]:
        loop = asyncio.get_running_loop()
        status_values = [OrderStatus(status).value for status in statuses] if statuses is not None else None
        return await loop.run_in_executor(None, self._fetch_orders_sync, status_values)

    def _fetch_orders_sync(self, statuses: Optional[list[str]]) -> list[Order]:
        query = "SELECT * FROM orders"
        params: tuple = ()
        if statuses is not None:
            if not statuses:
                return []
            placeholders = ", ".join("?" for _ in statuses)
            query += f" WHERE status IN ({placeholders})"
            params = tuple(statuses)
        query += " ORDER BY id"
        with self._lock:
            cursor = self._connection.cursor()
            cursor.execute(query, params)
            rows = cursor.fetchall()
            cursor.close()
        return [self._row_to_order(row) for row in rows]

    async def fetch_ignored_order_ids(self) -> list[str]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._fetch_ignored_order_ids_sync)

    def _fetch_ignored_order_ids_sync(self) -> list[str]:
        with self._lock:
            cursor = self._connection.cursor()
            cursor.execute("SELECT id FROM orders WHERE is_ignored = 1 ORDER BY id")
            rows = cursor.fetchall()
            cursor.close()
        return [row["id"] for row in rows]

    async def insert_order(self, order: Order) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._insert_order_sync, order)

    def _insert_order_sync(self, order: Order) -> None:
        columns = ("id", "status", "is_ignored") + _TEXT_COLUMNS + _SNAPSHOT_COLUMNS + ("updated_at",)
        values = [order.id]
        values.append(_encode("status", order.status))
        values.append(_encode("is_ignored", order.is_ignored))
        values.extend(getattr(order, column) for column in _TEXT_COLUMNS)
        values.extend(_encode(column, getattr(order, column)) for column in _SNAPSHOT_COLUMNS)
        values.append(_now())
        placeholders = ", ".join("?" for _ in columns)
        try:
            with self._lock:
                cursor = self._connection.cursor()
                cursor.execute(
                    f"INSERT INTO orders ({', '.join(columns)}) VALUES ({placeholders})",
                    tuple(values),
                )
                self._connection.commit()
                cursor.close()
        except sqlite3.Error as exc:
            raise PersistenceWriteFailed(f"insert of order {order.id} failed: {exc}") from exc

    async def update_order(self, order_id: str, changes: dict[str, Any]) -> bool:
        """Apply a partial update by id. Returns False when no record matched."""
        unknown = set(changes) - _UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Unknown order fields: {sorted(unknown)}")
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._update_order_sync, order_id, dict(changes))

    def _update_order_sync(self, order_id: str, changes: dict[str, Any]) -> bool:
        if not changes:
            return self._fetch_order_sync(order_id) is not None
        columns = sorted(changes)
        assignments = ", ".join(f"{column} = ?" for column in columns)
        values = [_encode(column, changes[column]) for column in columns]
        values.append(_now())
        values.append(order_id)
        try:
            with self._lock:
                cursor = self._connection.cursor()
                cursor.execute(
                    f"UPDATE orders SET {assignments}, updated_at = ? WHERE id = ?",
                    tuple(values),
                )
                updated = cursor.rowcount > 0
                self._connection.commit()
                cursor.close()
        except sqlite3.Error as exc:
            raise PersistenceWriteFailed(f"update of order {order_id} failed: {exc}") from exc
        return updated

    async def set_ignored(self, order_id: str, ignored: bool) -> bool:
        return await self.update_order(order_id, {"is_ignored": ignored})

    async def close(self) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._close_sync)

    def _close_sync(self) -> None:
        with self._lock:
            self._connection.commit()
            self._connection.close()

    @staticmethod
    def _row_to_order(row: sqlite3.Row) -> Order:
        return Order(
            id=row["id"],
            creator=row["creator"],
            token_in=row["token_in"],
            token_out=row["token_out"],
            amount_in=row["amount_in"],
            amount_out_min=row["amount_out_min"],
            status=OrderStatus(row["status"]),
            created_timestamp=row["created_timestamp"],
            created_block_number=row["created_block_number"],
            created_transaction_hash=row["created_transaction_hash"],
            executed_timestamp=row["executed_timestamp"],
            executed_block_number=row["executed_block_number"],
            executed_transaction_hash=row["executed_transaction_hash"],
            canceled_timestamp=row["canceled_timestamp"],
            canceled_block_number=row["canceled_block_number"],
            received_amount=row["received_amount"],
            created_snapshot=_decode_snapshot(row["created_snapshot"]),
            executed_snapshot=_decode_snapshot(row["executed_snapshot"]),
            saved_percentage=row["saved_percentage"],
            saved_usd=row["saved_usd"],
            is_ignored=bool(row["is_ignored"]),
        )


def _decode_snapshot(raw: Optional[str]) -> Optional[ValuationSnapshot]:
    if not raw:
        return None
    return ValuationSnapshot.from_dict(json.loads(raw))


def _now() -> str:
    return datetime.now(timezone.utc).strftime(ISO_FORMAT)


__all__ = ["SQLiteRepository", "Order", "OrderStatus", "ValuationSnapshot"]
