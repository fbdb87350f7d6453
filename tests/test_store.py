"""Test usage stores."""

import asyncio

import pytest

from budgeted_chat.tracking.sqlite_store import SqliteUsageStore
from budgeted_chat.tracking.store import InMemoryUsageStore


@pytest.fixture(params=["memory", "sqlite"])
def usage_store(request, tmp_path):
    if request.param == "memory":
        yield InMemoryUsageStore()
        return
    store = SqliteUsageStore(tmp_path / "usage.db")
    yield store
    store.close()


class TestUsageStore:
    async def test_new_user_is_zeroed_and_denied(self, usage_store):
        await usage_store.ensure_user("bob")

        account = await usage_store.get_account("bob")
        assert account.user_name == "bob"
        assert (account.can_use_app, account.can_import_files) == (False, False)
        assert account.total_requests == 0
        assert account.total_requests_with_files == 0
        assert account.total_tokens == 0
        assert account.total_cost == 0.0
        assert account.max_cost == 2.0

    async def test_ensure_user_is_idempotent(self, usage_store):
        await usage_store.ensure_user("bob")
        await usage_store.add_request("bob")
        await usage_store.ensure_user("bob")
        assert (await usage_store.get_account("bob")).total_requests == 1

    async def test_increments(self, usage_store):
        await usage_store.ensure_user("bob")
        await usage_store.add_tokens("bob", 15)
        await usage_store.add_tokens("bob", 5)
        await usage_store.add_cost("bob", 0.25)
        await usage_store.add_cost("bob", 0.5)
        await usage_store.add_request("bob")
        await usage_store.add_request_with_files("bob")

        assert await usage_store.get_total_tokens("bob") == 20
        assert await usage_store.get_total_cost("bob") == pytest.approx(0.75)
        account = await usage_store.get_account("bob")
        assert account.total_requests == 1
        assert account.total_requests_with_files == 1

    async def test_concurrent_increments_are_not_lost(self, usage_store):
        await usage_store.ensure_user("bob")
        await asyncio.gather(*(usage_store.add_tokens("bob", 1) for _ in range(50)))
        assert await usage_store.get_total_tokens("bob") == 50

    async def test_unknown_user_reads(self, usage_store):
        assert await usage_store.get_account("ghost") is None
        assert await usage_store.get_total_cost("ghost") == 0.0
        assert await usage_store.get_total_tokens("ghost") == 0
        assert await usage_store.get_cost_limit("ghost") is None
        flags = await usage_store.get_permissions("ghost")
        assert (flags.can_use_app, flags.can_import_files) == (False, False)

    async def test_increment_for_unknown_user_is_a_no_op(self, usage_store):
        await usage_store.add_cost("ghost", 1.0)
        assert await usage_store.get_account("ghost") is None


class TestSqliteUsageStore:
    async def test_admin_updates(self, tmp_path):
        store = SqliteUsageStore(tmp_path / "usage.db")
        await store.ensure_user("bob")
        store.set_permissions("bob", can_use_app=True, can_import_files=False)
        store.set_cost_limit("bob", 10.0)

        flags = await store.get_permissions("bob")
        assert flags.can_use_app is True
        assert flags.can_import_files is False
        assert await store.get_cost_limit("bob") == 10.0
        store.close()

    async def test_data_survives_reopen(self, tmp_path):
        path = tmp_path / "usage.db"
        store = SqliteUsageStore(path)
        await store.ensure_user("bob")
        await store.add_cost("bob", 1.5)
        store.close()

        reopened = SqliteUsageStore(path)
        assert await reopened.get_total_cost("bob") == pytest.approx(1.5)
        reopened.close()


class TestInMemoryUsageStore:
    def test_store_built_outside_a_running_loop(self):
        store = InMemoryUsageStore()
        assert store._lock is None

        async def exercise():
            await store.ensure_user("bob")
            await asyncio.gather(*(store.add_request("bob") for _ in range(20)))
            return await store.get_account("bob")

        account = asyncio.run(exercise())

        assert account.total_requests == 20
        assert store._lock is not None
