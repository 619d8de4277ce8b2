from .exceptions import (
    CounterInvariantError,
    SnifferError,
    SpyClosedError,
    WrongNumberOfQueriesError,
)
from .sniffer import (
    call,
    execute,
    executed_statements,
    expect,
    expect_at_least,
    expect_at_most,
    expect_at_most_once,
    expect_between,
    expect_never,
    reset,
    run,
    spy,
    thread_local_executed_statements,
)
from .spies import Spy, SpyWithValue
from .types import Expectation, Threads

__all__ = [
    "CounterInvariantError",
    "Expectation",
    "SnifferError",
    "Spy",
    "SpyClosedError",
    "SpyWithValue",
    "Threads",
    "WrongNumberOfQueriesError",
    "call",
    "execute",
    "executed_statements",
    "expect",
    "expect_at_least",
    "expect_at_most",
    "expect_at_most_once",
    "expect_between",
    "expect_never",
    "reset",
    "run",
    "spy",
    "thread_local_executed_statements",
]
