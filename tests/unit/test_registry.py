"""Unit tests for ActiveStreamRegistry.

Tests cover: register/unregister semantics, ownership-checked removal,
snapshots, and the at-most-one-entry invariant under concurrent callers.
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

from hypothesis import given, settings
from hypothesis import strategies as st

from reflowlogs.models.pods import PodIdentity
from reflowlogs.shutdown import CancellationToken
from reflowlogs.streaming.registry import ActiveStreamRegistry


def _pod(name: str) -> PodIdentity:
    return PodIdentity(name=name, namespace="ingress-nginx")


class TestRegister:
    def test_first_registration_wins(self) -> None:
        registry = ActiveStreamRegistry()
        assert registry.try_register(_pod("p1"))
        assert not registry.try_register(_pod("p1"))
        assert registry.is_registered("p1")
        assert len(registry) == 1

    def test_names_are_independent(self) -> None:
        registry = ActiveStreamRegistry()
        assert registry.try_register(_pod("p1"))
        assert registry.try_register(_pod("p2"))
        assert [e.pod.name for e in registry.entries()] == ["p1", "p2"]

    def test_entry_keeps_token_and_pod(self) -> None:
        registry = ActiveStreamRegistry()
        token = CancellationToken()
        registry.try_register(_pod("p1"), token)
        entry = registry.get("p1")
        assert entry is not None
        assert entry.token is token
        assert entry.pod == _pod("p1")


class TestUnregister:
    def test_is_idempotent(self) -> None:
        registry = ActiveStreamRegistry()
        registry.try_register(_pod("p1"))
        assert registry.unregister("p1") is not None
        assert registry.unregister("p1") is None
        assert not registry.is_registered("p1")

    def test_allows_reregistration(self) -> None:
        registry = ActiveStreamRegistry()
        registry.try_register(_pod("p1"))
        registry.unregister("p1")
        assert registry.try_register(_pod("p1"))

    def test_with_foreign_token_keeps_entry(self) -> None:
        registry = ActiveStreamRegistry()
        owner = CancellationToken()
        registry.try_register(_pod("p1"), owner)
        assert registry.unregister("p1", token=CancellationToken()) is None
        assert registry.is_registered("p1")
        assert registry.unregister("p1", token=owner) is not None
        assert not registry.is_registered("p1")


class TestConcurrency:
    def test_exactly_one_thread_registers_a_name(self) -> None:
        registry = ActiveStreamRegistry()
        workers = 32
        barrier = threading.Barrier(workers)

        def attempt(_: int) -> bool:
            barrier.wait()
            return registry.try_register(_pod("contended"))

        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(attempt, range(workers)))

        assert results.count(True) == 1
        assert len(registry) == 1

    @settings(max_examples=25, deadline=None)
    @given(names=st.lists(st.sampled_from(["a", "b", "c", "d"]), min_size=1, max_size=40))
    def test_one_winner_per_distinct_name(self, names: list[str]) -> None:
        registry = ActiveStreamRegistry()
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda n: (n, registry.try_register(_pod(n))), names))

        winners = [n for n, ok in results if ok]
        assert sorted(winners) == sorted(set(names))
        assert len(registry) == len(set(names))
