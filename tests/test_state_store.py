"""
Test suite for the state stores and MonitorRepository.

Tests:
  - Versioned reads and conditional multi-key commits, in memory and through the redis Lua script
  - Namespaces isolating parallel ledgers
  - Price alert bookkeeping and portfolio history caps
  - Backup export and import
"""

import asyncio

import fakeredis.aioredis
import pytest

from portfolio_monitor.exceptions import ConflictError, MonitorError
from portfolio_monitor.models import MonitorSettings, PortfolioHistoryPoint, PriceAlert
from portfolio_monitor.store import InMemoryStateStore, MonitorRepository, RedisStateStore, StateKeys


class TestInMemoryStateStore:
    """Versioning and compare-and-set semantics."""

    def test_absent_key_reads_as_version_zero(self):
        versioned = asyncio.run(InMemoryStateStore().get_versioned("positions"))
        assert versioned.value is None
        assert versioned.version == 0

    def test_set_bumps_version(self):
        store = InMemoryStateStore()

        async def scenario():
            await store.set("capital", 1000)
            await store.set("capital", 2000)
            return await store.get_versioned("capital")

        versioned = asyncio.run(scenario())
        assert versioned.value == 2000
        assert versioned.version == 2

    def test_commit_with_current_versions_writes_every_key(self):
        store = InMemoryStateStore()

        async def scenario():
            a = await store.get_versioned("a")
            b = await store.get_versioned("b")
            await store.commit({"a": 1, "b": [2]}, {"a": a.version, "b": b.version})
            return await store.get("a"), await store.get("b")

        assert asyncio.run(scenario()) == (1, [2])

    def test_stale_guard_rejects_whole_commit(self):
        store = InMemoryStateStore()

        async def scenario():
            a = await store.get_versioned("a")
            guard = await store.get_versioned("guard")
            await store.set("guard", "changed")
            await store.commit({"a": 1}, {"a": a.version, "guard": guard.version})

        with pytest.raises(ConflictError):
            asyncio.run(scenario())
        assert asyncio.run(store.get("a")) is None

    def test_delete_keeps_versions_monotonic(self):
        store = InMemoryStateStore()

        async def scenario():
            await store.set("positions", {"BTC": {}})
            stale = await store.get_versioned("positions")
            await store.delete("positions")
            await store.set("positions", {"BTC": {}})
            try:
                await store.commit({"positions": {}}, {"positions": stale.version})
            except ConflictError:
                return True
            return False

        assert asyncio.run(scenario()) is True

    def test_values_are_copies(self):
        store = InMemoryStateStore()

        async def scenario():
            value = {"BTC": 1.0}
            await store.set("balance_snapshot", value)
            value["BTC"] = 2.0
            return await store.get("balance_snapshot")

        assert asyncio.run(scenario()) == {"BTC": 1.0}

    def test_namespaces_are_isolated(self):
        live = InMemoryStateStore(namespace="monitor:")
        virtual = InMemoryStateStore(namespace="virtual:")

        asyncio.run(live.set("positions", {"BTC": 1}))

        assert asyncio.run(virtual.get("positions")) is None


class TestRedisStateStore:
    """The Lua-scripted commit path, run against an in-process redis with scripting."""

    @staticmethod
    def run(scenario):
        async def runner():
            store = RedisStateStore("redis://localhost:6379/0", namespace="monitor:")
            store._client = fakeredis.aioredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)
            try:
                return await scenario(store)
            finally:
                await store.close()

        return asyncio.run(runner())

    def test_keys_are_namespaced(self):
        store = RedisStateStore("redis://localhost:6379/0", namespace="monitor:")
        assert store._key("positions") == "monitor:positions"

    def test_values_live_in_namespaced_hashes(self):
        async def scenario(store):
            await store.set("positions", {"BTC": 1})
            return await store._client.hgetall("monitor:positions")

        assert self.run(scenario) == {"value": '{"BTC": 1}', "version": "1"}

    def test_absent_key_reads_as_version_zero(self):
        async def scenario(store):
            return await store.get_versioned("positions")

        versioned = self.run(scenario)
        assert versioned.value is None
        assert versioned.version == 0

    def test_set_bumps_version(self):
        async def scenario(store):
            await store.set("capital", 1000)
            await store.set("capital", 2000)
            return await store.get_versioned("capital")

        versioned = self.run(scenario)
        assert versioned.value == 2000
        assert versioned.version == 2

    def test_commit_with_current_versions_writes_every_key(self):
        async def scenario(store):
            await store.set("b", "old")
            a = await store.get_versioned("a")
            b = await store.get_versioned("b")
            await store.commit({"a": 1, "b": [2]}, {"a": a.version, "b": b.version})
            return await store.get_versioned("a"), await store.get_versioned("b")

        a, b = self.run(scenario)
        assert (a.value, a.version) == (1, 1)
        assert (b.value, b.version) == ([2], 2)

    def test_stale_guard_rejects_whole_commit(self):
        async def scenario(store):
            a = await store.get_versioned("a")
            guard = await store.get_versioned("guard")
            await store.set("guard", "changed")
            try:
                await store.commit({"a": 1}, {"a": a.version, "guard": guard.version})
            except ConflictError:
                return True, await store.get_versioned("a")
            return False, await store.get_versioned("a")

        conflicted, a = self.run(scenario)
        assert conflicted is True
        assert a.value is None
        assert a.version == 0

    def test_delete_keeps_versions_monotonic(self):
        async def scenario(store):
            await store.set("positions", {"BTC": {}})
            stale = await store.get_versioned("positions")
            await store.delete("positions")
            deleted = await store.get_versioned("positions")
            await store.set("positions", {"BTC": {}})
            try:
                await store.commit({"positions": {}}, {"positions": stale.version})
            except ConflictError:
                return deleted, True
            return deleted, False

        deleted, conflicted = self.run(scenario)
        assert deleted.value is None
        assert deleted.version == 2
        assert conflicted is True

    def test_unguarded_write_is_stored(self):
        async def scenario(store):
            guard = await store.get_versioned("positions")
            await store.commit(
                {"positions": {"BTC": 1}, "trade_history": [{"asset": "BTC"}]},
                {"positions": guard.version}
            )
            return await store.get_versioned("trade_history")

        history = self.run(scenario)
        assert history.value == [{"asset": "BTC"}]
        assert history.version == 1

    def test_guard_without_write_is_only_checked(self):
        async def scenario(store):
            await store.set("positions", {"BTC": 1})
            positions = await store.get_versioned("positions")
            extrema = await store.get_versioned("position_extrema")
            await store.commit(
                {"position_extrema": {"BTC": 2}},
                {"positions": positions.version, "position_extrema": extrema.version}
            )
            return await store.get_versioned("positions"), await store.get_versioned("position_extrema")

        positions, extrema = self.run(scenario)
        assert (positions.value, positions.version) == ({"BTC": 1}, 1)
        assert (extrema.value, extrema.version) == ({"BTC": 2}, 1)
class TestMonitorRepository:
    """Typed access helpers."""

    def test_add_and_delete_price_alert(self):
        repository = MonitorRepository(InMemoryStateStore())

        async def scenario():
            await repository.add_price_alert(PriceAlert(id="a1", inst_id="btc-usdt", condition=">", price=70000))
            await repository.add_price_alert(PriceAlert(id="a2", inst_id="ETH-USDT", condition="<", price=2000))
            deleted = await repository.delete_price_alert("a1")
            missing = await repository.delete_price_alert("nope")
            return deleted, missing, await repository.get_price_alerts()

        deleted, missing, alerts = asyncio.run(scenario())

        assert deleted is True
        assert missing is False
        assert [a.id for a in alerts] == ["a2"]

    def test_movement_settings_default_to_configured_threshold(self):
        repository = MonitorRepository(InMemoryStateStore(), default_movement_threshold=3.0)
        settings = asyncio.run(repository.get_movement_settings())
        assert settings.global_threshold == 3.0
        assert settings.overrides == {}

    def test_settings_and_capital_defaults(self):
        repository = MonitorRepository(InMemoryStateStore())
        assert asyncio.run(repository.get_settings()) == MonitorSettings()
        assert asyncio.run(repository.get_capital()) == 0.0

    def test_history_points_are_deduplicated_and_capped(self):
        repository = MonitorRepository(InMemoryStateStore())

        async def scenario():
            results = []
            for label in ["01", "02", "02", "03", "04"]:
                point = PortfolioHistoryPoint(label=label, total=100.0)
                results.append(await repository.append_history_point(StateKeys.DAILY_HISTORY, point, limit=3))
            return results, await repository.get_daily_history()

        results, history = asyncio.run(scenario())

        assert results == [True, True, False, True, True]
        assert [p.label for p in history] == ["02", "03", "04"]

    def test_export_then_import_restores_state(self):
        source = MonitorRepository(InMemoryStateStore())
        target = MonitorRepository(InMemoryStateStore())

        async def scenario():
            await source.save_capital(5000)
            await source.save_settings(MonitorSettings(debug_mode=True))
            document = await source.export_all()
            await target.save_capital(1)
            rollback = await target.import_all(document)
            return document, rollback, await target.get_capital(), await target.get_settings()

        document, rollback, capital, settings = asyncio.run(scenario())

        assert document["metadata"]["bot_name"] == "OKX Portfolio Monitor"
        assert document["metadata"]["version"] == "1.0"
        assert rollback[StateKeys.CAPITAL] == 1
        assert capital == 5000
        assert settings.debug_mode is True

    def test_import_rejects_documents_without_metadata(self):
        repository = MonitorRepository(InMemoryStateStore())

        with pytest.raises(MonitorError):
            asyncio.run(repository.import_all({"capital": 10}))
