import asyncio
from types import SimpleNamespace

from arena import cache
from arena.cache import TTLCache


def test_entries_expire(monkeypatch):
    clock = [100.0]
    monkeypatch.setattr(cache, "time", SimpleNamespace(monotonic=lambda: clock[0]))
    store = TTLCache(ttl_seconds=10)

    async def scenario():
        await store.set("m1", "veto")
        assert await store.get("m1") == "veto"
        clock[0] += 9.9
        assert await store.get("m1") == "veto"
        clock[0] += 0.2
        assert await store.get("m1") is None

    asyncio.run(scenario())


def test_set_refreshes_expiry_and_invalidate_removes(monkeypatch):
    clock = [0.0]
    monkeypatch.setattr(cache, "time", SimpleNamespace(monotonic=lambda: clock[0]))
    store = TTLCache(ttl_seconds=5)

    async def scenario():
        await store.set("m1", 1)
        clock[0] += 4
        await store.set("m1", 2)
        clock[0] += 4
        assert await store.get("m1") == 2
        await store.invalidate("m1")
        assert await store.get("m1") is None
        await store.set("m2", 3, ttl_seconds=0)
        assert await store.get("m2") is None
        await store.set("m3", 4)
        assert await store.pop("m3") == 4
        assert await store.pop("m3") is None

    asyncio.run(scenario())
