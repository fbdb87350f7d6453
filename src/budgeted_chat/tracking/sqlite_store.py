"""SQLite-backed usage store."""

import asyncio
import sqlite3
import threading
from pathlib import Path
from typing import Any, Optional, Union

from ..types import FeatureFlags, UserAccount
from .store import UsageStore

# Columns that may be incremented, mapped to their SQL names.
_COUNTERS = {
    "total_requests": "totalRequests",
    "total_requests_with_files": "totalRequestsWithFiles",
    "total_tokens": "totalTokens",
    "total_cost": "totalCost",
}


class SqliteUsageStore(UsageStore):
    """Small SQLite wrapper for the ``users`` table.

    Every increment is a single ``UPDATE ... SET col = col + ?`` statement,
    so SQLite serializes concurrent increments. Blocking calls run in a
    worker thread via ``asyncio.to_thread``.
    """

    def __init__(self, db_path: Union[Path, str] = ":memory:") -> None:
        self.db_path = str(db_path)
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level=None)
        self.conn.row_factory = sqlite3.Row
        self._conn_lock = threading.Lock()
        self._init_schema()

    def _init_schema(self) -> None:
        self.conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS users (
                user_name TEXT PRIMARY KEY,
                canUseApp INTEGER NOT NULL DEFAULT 0,
                canImportFiles INTEGER NOT NULL DEFAULT 0,
                totalRequests INTEGER NOT NULL DEFAULT 0 CHECK (totalRequests >= 0),
                totalRequestsWithFiles INTEGER NOT NULL DEFAULT 0
                    CHECK (totalRequestsWithFiles >= 0),
                totalTokens INTEGER NOT NULL DEFAULT 0 CHECK (totalTokens >= 0),
                totalCost REAL NOT NULL DEFAULT 0.0 CHECK (totalCost >= 0.0),
                maxCost REAL NOT NULL DEFAULT 2.0 CHECK (maxCost >= 0.0)
            );
            """
        )

    def close(self) -> None:
        self.conn.close()

    def _execute(self, sql: str, params: tuple = ()) -> None:
        with self._conn_lock:
            self.conn.execute(sql, params)

    def _fetch_one(self, sql: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        with self._conn_lock:
            return self.conn.execute(sql, params).fetchone()

    async def _run(self, fn, *args: Any):
        return await asyncio.to_thread(fn, *args)

    # ------------------------------------------------------------------ #
    # Administration                                                       #
    # ------------------------------------------------------------------ #

    def set_permissions(
        self, user_name: str, can_use_app: bool, can_import_files: bool
    ) -> None:
        self._execute(
            "UPDATE users SET canUseApp = ?, canImportFiles = ? WHERE user_name = ?",
            (int(can_use_app), int(can_import_files), user_name),
        )

    def set_cost_limit(self, user_name: str, max_cost: float) -> None:
        self._execute("UPDATE users SET maxCost = ? WHERE user_name = ?", (max_cost, user_name))

    # ------------------------------------------------------------------ #
    # UsageStore                                                           #
    # ------------------------------------------------------------------ #

    async def ensure_user(self, user_name: str) -> None:
        await self._run(
            self._execute, "INSERT OR IGNORE INTO users (user_name) VALUES (?)", (user_name,)
        )

    async def get_account(self, user_name: str) -> Optional[UserAccount]:
        row = await self._run(
            self._fetch_one, "SELECT * FROM users WHERE user_name = ?", (user_name,)
        )
        if row is None:
            return None
        return UserAccount(
            user_name=row["user_name"],
            can_use_app=bool(row["canUseApp"]),
            can_import_files=bool(row["canImportFiles"]),
            total_requests=row["totalRequests"],
            total_requests_with_files=row["totalRequestsWithFiles"],
            total_tokens=row["totalTokens"],
            total_cost=row["totalCost"],
            max_cost=row["maxCost"],
        )

    async def get_permissions(self, user_name: str) -> FeatureFlags:
        row = await self._run(
            self._fetch_one,
            "SELECT canUseApp, canImportFiles FROM users WHERE user_name = ?",
            (user_name,),
        )
        if row is None:
            return FeatureFlags.deny_all()
        return FeatureFlags(
            can_use_app=bool(row["canUseApp"]), can_import_files=bool(row["canImportFiles"])
        )

    async def get_total_cost(self, user_name: str) -> float:
        row = await self._run(
            self._fetch_one, "SELECT totalCost FROM users WHERE user_name = ?", (user_name,)
        )
        return float(row["totalCost"]) if row is not None else 0.0

    async def get_cost_limit(self, user_name: str) -> Optional[float]:
        row = await self._run(
            self._fetch_one, "SELECT maxCost FROM users WHERE user_name = ?", (user_name,)
        )
        if row is None or row["maxCost"] is None:
            return None
        return float(row["maxCost"])

    async def get_total_tokens(self, user_name: str) -> int:
        row = await self._run(
            self._fetch_one, "SELECT totalTokens FROM users WHERE user_name = ?", (user_name,)
        )
        return int(row["totalTokens"]) if row is not None else 0

    async def add_tokens(self, user_name: str, tokens: int) -> None:
        await self._increment(user_name, "total_tokens", int(tokens))

    async def add_cost(self, user_name: str, cost: float) -> None:
        await self._increment(user_name, "total_cost", float(cost))

    async def add_request(self, user_name: str) -> None:
        await self._increment(user_name, "total_requests", 1)

    async def add_request_with_files(self, user_name: str) -> None:
        await self._increment(user_name, "total_requests_with_files", 1)

    async def _increment(self, user_name: str, field_name: str, amount) -> None:
        column = _COUNTERS[field_name]
        await self._run(
            self._execute,
            f"UPDATE users SET {column} = {column} + ? WHERE user_name = ?",
            (amount, user_name),
        )
