from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from types import SimpleNamespace

import pytest

from gitops_promoter.client_cache import ClientCache, ClientRegistry
from gitops_promoter.settings import GitHubIdentity, Settings


def test_get_or_create_creates_once_under_contention() -> None:
    cache: ClientCache[str, object] = ClientCache(4)
    calls = []
    start = threading.Barrier(8)

    def factory(key: str) -> object:
        calls.append(key)
        time.sleep(0.01)
        return object()

    def worker() -> object:
        start.wait()
        return cache.get_or_create("acme", factory)

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: worker(), range(8)))

    assert calls == ["acme"]
    assert all(r is results[0] for r in results)


def test_slow_factory_does_not_block_other_accounts() -> None:
    cache: ClientCache[str, str] = ClientCache(4)
    entered = threading.Event()
    release = threading.Event()

    def slow(key: str) -> str:
        entered.set()
        release.wait(5)
        return "slow-" + key

    with ThreadPoolExecutor(max_workers=2) as pool:
        pending = pool.submit(cache.get_or_create, "acme", slow)
        assert entered.wait(2)
        try:
            started = time.monotonic()
            assert cache.get_or_create("globex", str.upper) == "GLOBEX"
            assert time.monotonic() - started < 1
            waiter = pool.submit(cache.get_or_create, "acme", str.upper)
        finally:
            release.set()

        assert pending.result(2) == "slow-acme"
        assert waiter.result(2) == "slow-acme"


def test_pending_entry_is_dropped_when_factory_fails() -> None:
    cache: ClientCache[str, str] = ClientCache(2)
    entered = threading.Event()
    release = threading.Event()

    def failing(key: str) -> str:
        entered.set()
        release.wait(5)
        raise RuntimeError("bad credentials")

    with ThreadPoolExecutor(max_workers=1) as pool:
        creator = pool.submit(cache.get_or_create, "acme", failing)
        assert entered.wait(2)
        assert "acme" in cache
        release.set()
        with pytest.raises(RuntimeError):
            creator.result(2)

    assert "acme" not in cache
    assert cache.get_or_create("acme", str.upper) == "ACME"


def test_cache_evicts_least_recently_used() -> None:
    cache: ClientCache[str, str] = ClientCache(2)
    cache.get_or_create("a", str.upper)
    cache.get_or_create("b", str.upper)
    cache.get_or_create("a", str.upper)
    cache.get_or_create("c", str.upper)

    assert "a" in cache
    assert "b" not in cache
    assert "c" in cache
    assert len(cache) == 2


def test_cache_rejects_zero_size() -> None:
    with pytest.raises(ValueError):
        ClientCache(0)


def test_factory_failure_leaves_no_entry() -> None:
    cache: ClientCache[str, str] = ClientCache(2)

    def failing(key: str) -> str:
        raise RuntimeError("bad key")

    with pytest.raises(RuntimeError):
        cache.get_or_create("acme", failing)
    assert "acme" not in cache


def test_registry_keeps_identities_apart() -> None:
    settings = Settings(
        main_identity=GitHubIdentity(oauth_token="main"),
        approver_identity=GitHubIdentity(oauth_token="approver"),
    )
    built = []

    def factory(identity, owner, _settings):
        built.append((identity.oauth_token, owner))
        return SimpleNamespace(token=identity.oauth_token, owner=owner)

    registry = ClientRegistry(settings, factory=factory)

    assert registry.main("acme").token == "main"
    assert registry.approver("acme").token == "approver"
    assert registry.main("acme") is registry.main("acme")
    assert sorted(built) == [("approver", "acme"), ("main", "acme")]


def test_registry_without_approver_identity() -> None:
    registry = ClientRegistry(
        Settings(main_identity=GitHubIdentity(oauth_token="main")),
        factory=lambda *args: SimpleNamespace(),
    )
    assert registry.approver("acme") is None
