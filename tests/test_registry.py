import gc

import pytest

from query_sniffer.counters import ExecutionCounters
from query_sniffer.registry import ObserverRegistry
from query_sniffer.spies import Spy


@pytest.fixture
def registry():
    return ObserverRegistry()


@pytest.fixture
def counters(registry: ObserverRegistry):
    return ExecutionCounters(observers=registry)


def test_register_and_unregister(registry: ObserverRegistry, counters):
    spy = Spy(counters=counters)
    assert registry.live_spies() == [spy]

    other = Spy(counters=counters)
    assert registry.live_spies() == [spy, other]

    spy.close()
    assert registry.live_spies() == [other]


def test_unregister_is_idempotent(registry: ObserverRegistry):
    class Observer:
        def add_executed_sql(self, sql: str):
            pass

    observer = Observer()
    reference = registry.register(observer)

    registry.unregister(reference)
    registry.unregister(reference)

    assert len(registry) == 0


def test_broadcast_preserves_order(registry: ObserverRegistry, counters):
    spy = Spy(counters=counters)

    for sql in ("SELECT 1", "SELECT 2", "SELECT 3"):
        registry.broadcast(sql)

    assert spy.executed_sqls == ("SELECT 1", "SELECT 2", "SELECT 3")


def test_closed_spy_is_not_notified(registry: ObserverRegistry, counters):
    spy = Spy(counters=counters)
    counters.record("SELECT 1")
    spy.close()

    counters.record("SELECT 2")

    assert spy.executed_sqls == ("SELECT 1",)


def test_dropped_spy_is_pruned_on_broadcast(registry: ObserverRegistry, counters):
    kept = Spy(counters=counters)
    dropped = Spy(counters=counters)
    assert len(registry) == 2

    del dropped
    gc.collect()

    counters.record("SELECT 1")

    assert len(registry) == 1
    assert kept.executed_sqls == ("SELECT 1",)


def test_repeated_create_and_drop_does_not_grow(registry: ObserverRegistry, counters):
    for _ in range(100):
        Spy(counters=counters).expect_never()
        counters.record("SELECT 1")

    gc.collect()
    counters.record("SELECT 1")

    assert len(registry) == 0
    assert counters.executed_statements() == 101


def test_dropped_spies_are_pruned_without_statements(
    registry: ObserverRegistry, counters
):
    for _ in range(1000):
        Spy(counters=counters)

    gc.collect()
    kept = Spy(counters=counters)

    assert len(registry) == 1
    assert registry.live_spies() == [kept]
    assert counters.executed_statements() == 0
