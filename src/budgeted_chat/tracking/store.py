"""Per-user permission and usage storage."""

import asyncio
import dataclasses
from abc import ABC, abstractmethod
from typing import Dict, Optional

from ..types import FeatureFlags, UserAccount

DEFAULT_MAX_COST = 2.0


class UsageStore(ABC):
    """Async record store keyed by user name.

    Counters only ever grow through the ``add_*`` methods. Implementations
    must apply each increment atomically so concurrent requests from the
    same user never lose an update; callers never read-modify-write.

    Reads for a user that does not exist return zero values (and no
    permissions) rather than raising.
    """

    @abstractmethod
    async def ensure_user(self, user_name: str) -> None:
        """Create a zeroed record for ``user_name`` if none exists."""
        ...

    @abstractmethod
    async def get_account(self, user_name: str) -> Optional[UserAccount]:
        ...

    @abstractmethod
    async def get_permissions(self, user_name: str) -> FeatureFlags:
        ...

    @abstractmethod
    async def get_total_cost(self, user_name: str) -> float:
        ...

    @abstractmethod
    async def get_cost_limit(self, user_name: str) -> Optional[float]:
        """Spend ceiling for the user, or None if the user has none."""
        ...

    @abstractmethod
    async def get_total_tokens(self, user_name: str) -> int:
        ...

    @abstractmethod
    async def add_tokens(self, user_name: str, tokens: int) -> None:
        ...

    @abstractmethod
    async def add_cost(self, user_name: str, cost: float) -> None:
        ...

    @abstractmethod
    async def add_request(self, user_name: str) -> None:
        ...

    @abstractmethod
    async def add_request_with_files(self, user_name: str) -> None:
        ...


class InMemoryUsageStore(UsageStore):
    """Process-local store. Each increment runs under an asyncio lock.

    Example:
        >>> store = InMemoryUsageStore()
        >>> await store.ensure_user("alice")
        >>> await store.add_cost("alice", 0.25)
        >>> await store.get_total_cost("alice")
        0.25
    """

    def __init__(self, default_max_cost: Optional[float] = DEFAULT_MAX_COST) -> None:
        self._default_max_cost = default_max_cost
        self._accounts: Dict[str, UserAccount] = {}
        # Created on first use so it binds to the loop that runs the store.
        self._lock: Optional[asyncio.Lock] = None

    def _get_lock(self) -> asyncio.Lock:
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    def put_account(self, account: UserAccount) -> None:
        """Insert or replace a record (administrative seeding)."""
        self._accounts[account.user_name] = dataclasses.replace(account)

    async def ensure_user(self, user_name: str) -> None:
        async with self._get_lock():
            if user_name not in self._accounts:
                self._accounts[user_name] = UserAccount(
                    user_name=user_name, max_cost=self._default_max_cost
                )

    async def get_account(self, user_name: str) -> Optional[UserAccount]:
        account = self._accounts.get(user_name)
        # Copy so callers cannot bypass the increment methods.
        return dataclasses.replace(account) if account is not None else None

    async def get_permissions(self, user_name: str) -> FeatureFlags:
        account = self._accounts.get(user_name)
        if account is None:
            return FeatureFlags.deny_all()
        return FeatureFlags(
            can_use_app=account.can_use_app, can_import_files=account.can_import_files
        )

    async def get_total_cost(self, user_name: str) -> float:
        account = self._accounts.get(user_name)
        return account.total_cost if account is not None else 0.0

    async def get_cost_limit(self, user_name: str) -> Optional[float]:
        account = self._accounts.get(user_name)
        return account.max_cost if account is not None else None

    async def get_total_tokens(self, user_name: str) -> int:
        account = self._accounts.get(user_name)
        return account.total_tokens if account is not None else 0

    async def add_tokens(self, user_name: str, tokens: int) -> None:
        await self._increment(user_name, "total_tokens", int(tokens))

    async def add_cost(self, user_name: str, cost: float) -> None:
        await self._increment(user_name, "total_cost", float(cost))

    async def add_request(self, user_name: str) -> None:
        await self._increment(user_name, "total_requests", 1)

    async def add_request_with_files(self, user_name: str) -> None:
        await self._increment(user_name, "total_requests_with_files", 1)

    async def _increment(self, user_name: str, field_name: str, amount) -> None:
        async with self._get_lock():
            account = self._accounts.get(user_name)
            # Same as an UPDATE matching no row.
            if account is None:
                return
            setattr(account, field_name, getattr(account, field_name) + amount)
