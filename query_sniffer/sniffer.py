"""Module level shortcuts around the process-wide counters and `Spy`.

    import query_sniffer

    with query_sniffer.expect_at_most_once():
        session.scalars(select(Star)).all()
"""
from typing import Any, Callable, Optional, TypeVar

from query_sniffer.counters import execution_counters
from query_sniffer.spies import Spy, SpyWithValue
from query_sniffer.types import Threads

V = TypeVar("V")


def executed_statements() -> int:
    """Total number of statements executed by all threads."""
    return execution_counters.executed_statements()


def thread_local_executed_statements() -> int:
    """Number of statements executed by the current thread."""
    return execution_counters.thread_local_executed_statements()


def reset():
    """Sets the global and current thread counters back to zero.

    Only safe when no other thread is executing statements, e.g. during
    single threaded test setup. Open spies get meaningless counts afterwards.
    """
    execution_counters.reset()
    execution_counters.reset_thread_local()


def spy() -> Spy:
    return Spy()


def expect_never(threads: Optional[Threads] = None) -> Spy:
    return spy().expect_never(threads=threads)


def expect_at_most_once(threads: Optional[Threads] = None) -> Spy:
    return spy().expect_at_most_once(threads=threads)


def expect_at_most(allowed_statements: int, threads: Optional[Threads] = None) -> Spy:
    return spy().expect_at_most(allowed_statements, threads=threads)


def expect(allowed_statements: int, threads: Optional[Threads] = None) -> Spy:
    return spy().expect(allowed_statements, threads=threads)


def expect_at_least(allowed_statements: int, threads: Optional[Threads] = None) -> Spy:
    return spy().expect_at_least(allowed_statements, threads=threads)


def expect_between(
    min_allowed_statements: int,
    max_allowed_statements: Optional[int],
    threads: Optional[Threads] = None,
) -> Spy:
    return spy().expect_between(
        min_allowed_statements, max_allowed_statements, threads=threads
    )


def execute(work: Callable[..., Any], *args, **kwargs) -> Spy:
    return spy().execute(work, *args, **kwargs)


def run(work: Callable[[], Any]) -> Spy:
    return spy().run(work)


def call(work: Callable[..., V], *args, **kwargs) -> SpyWithValue[V]:
    return spy().call(work, *args, **kwargs)
