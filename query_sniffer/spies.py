import logging
import threading
import traceback
from typing import Any, Callable, ClassVar, Generic, Iterable, Optional, TypeVar

from query_sniffer.counters import ExecutionCounters, execution_counters
from query_sniffer.exceptions import (
    CounterInvariantError,
    SnifferError,
    SpyClosedError,
    WrongNumberOfQueriesError,
)
from query_sniffer.types import Expectation, Threads
from query_sniffer.utils import add_suppressed, capture_stack

logger = logging.getLogger(__name__)

TSpy = TypeVar("TSpy", bound="Spy")
V = TypeVar("V")


class Spy:
    """Holds the number of statements executed at some point in time and uses
    it as the baseline for further assertions.

    Expectations are added with the `expect_*` methods and checked by
    `verify()`; the `verify_*` methods check a single range immediately.
    A spy can be used as a context manager, in which case leaving the block
    closes it and verifies every expectation:

        with Spy().expect_at_most_once():
            session.get(Planet, planet_id)

    Counts for `Threads.CURRENT` and `Threads.OTHERS` are taken relative to
    the thread that evaluates them.
    """

    default_threads: ClassVar[Threads] = Threads.CURRENT

    def __init__(
        self,
        initial_queries: Optional[int] = None,
        initial_thread_local_queries: Optional[int] = None,
        counters: Optional[ExecutionCounters] = None,
        executed_sqls: Iterable[str] = (),
    ):
        self._counters = counters or execution_counters
        self._lock = threading.Lock()

        self._initial_queries = (
            self._counters.executed_statements()
            if initial_queries is None
            else initial_queries
        )
        self._initial_thread_local_queries = (
            self._counters.thread_local_executed_statements()
            if initial_thread_local_queries is None
            else initial_thread_local_queries
        )
        self._origin_thread = threading.get_ident()

        self._executed_sqls: list[str] = list(executed_sqls)
        self._expectations: list[Expectation] = []

        self._closed = False
        self._close_stack: Optional[traceback.StackSummary] = None

        self._reference = self._counters.observers.register(self)

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return (
            f"<{self.__class__.__name__} {state} "
            f"initial_queries={self._initial_queries} "
            f"initial_thread_local_queries={self._initial_thread_local_queries}>"
        )

    def __enter__(self: TSpy) -> TSpy:
        self._check_opened()
        return self

    def __exit__(self, exc_type, exc_value, exc_tb) -> None:
        if exc_value is None:
            self.close()
            return

        try:
            self.close()
        except SnifferError as error:
            self._attach_to_exception(exc_value, error)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def initial_queries(self) -> int:
        return self._initial_queries

    @property
    def initial_thread_local_queries(self) -> int:
        return self._initial_thread_local_queries

    @property
    def executed_sqls(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._executed_sqls)

    @property
    def expectations(self) -> tuple[Expectation, ...]:
        with self._lock:
            return tuple(self._expectations)

    def add_executed_sql(self, sql: str):
        # Called by the registry on behalf of whichever thread ran the statement
        with self._lock:
            self._executed_sqls.append(sql)

    def reset(self: TSpy) -> TSpy:
        """Takes the current counters as the new baseline and forgets the
        statements logged so far. Expectations are kept."""
        self._check_opened()

        with self._lock:
            self._initial_queries = self._counters.executed_statements()
            self._initial_thread_local_queries = (
                self._counters.thread_local_executed_statements()
            )
            self._origin_thread = threading.get_ident()
            self._executed_sqls.clear()

        return self

    def executed_statements(self, threads: Optional[Threads] = None) -> int:
        """Number of statements executed by `threads` since the baseline."""
        self._check_opened()
        threads = self._resolve_threads(threads)

        if threads is Threads.ANY:
            num_queries = self._counters.executed_statements() - self._initial_queries
        elif threads is Threads.CURRENT:
            num_queries = (
                self._counters.thread_local_executed_statements()
                - self._initial_thread_local_queries
            )
        else:
            # Not an atomic snapshot: a statement recorded by another thread
            # between both reads can be off by one.
            num_queries = (
                self._counters.executed_statements()
                - self._counters.thread_local_executed_statements()
                - self._initial_queries
                + self._initial_thread_local_queries
            )

        if num_queries < 0 and threading.get_ident() == self._origin_thread:
            raise CounterInvariantError(
                f"Negative number of {threads.value} queries ({num_queries}) "
                f"for {self!r}; were the counters reset while it was open?"
            )

        return num_queries

    # never

    def expect_never(self: TSpy, threads: Optional[Threads] = None) -> TSpy:
        return self.expect_between(0, 0, threads=threads)

    def verify_never(self: TSpy, threads: Optional[Threads] = None) -> TSpy:
        return self.verify_between(0, 0, threads=threads)

    # at most once

    def expect_at_most_once(self: TSpy, threads: Optional[Threads] = None) -> TSpy:
        return self.expect_between(0, 1, threads=threads)

    def verify_at_most_once(self: TSpy, threads: Optional[Threads] = None) -> TSpy:
        return self.verify_between(0, 1, threads=threads)

    # at most

    def expect_at_most(
        self: TSpy, allowed_statements: int, threads: Optional[Threads] = None
    ) -> TSpy:
        return self.expect_between(0, allowed_statements, threads=threads)

    def verify_at_most(
        self: TSpy, allowed_statements: int, threads: Optional[Threads] = None
    ) -> TSpy:
        return self.verify_between(0, allowed_statements, threads=threads)

    # exact

    def expect(
        self: TSpy, allowed_statements: int, threads: Optional[Threads] = None
    ) -> TSpy:
        return self.expect_between(
            allowed_statements, allowed_statements, threads=threads
        )

    def verify(
        self: TSpy,
        allowed_statements: Optional[int] = None,
        threads: Optional[Threads] = None,
    ) -> TSpy:
        """Without arguments, verifies every expectation added with `expect_*`.

        With `allowed_statements`, verifies that exactly that many statements
        were executed, ignoring the registered expectations.

        Raises WrongNumberOfQueriesError on mismatch; when several expectations
        fail, the others are chained as `__cause__` of the raised error.
        """
        if allowed_statements is not None:
            return self.verify_between(
                allowed_statements, allowed_statements, threads=threads
            )

        if threads is not None:
            raise ValueError("threads can only be given with allowed_statements")

        if error := self.get_wrong_number_of_queries_error():
            raise error

        return self

    # at least

    def expect_at_least(
        self: TSpy, allowed_statements: int, threads: Optional[Threads] = None
    ) -> TSpy:
        return self.expect_between(allowed_statements, None, threads=threads)

    def verify_at_least(
        self: TSpy, allowed_statements: int, threads: Optional[Threads] = None
    ) -> TSpy:
        return self.verify_between(allowed_statements, None, threads=threads)

    # between

    def expect_between(
        self: TSpy,
        min_allowed_statements: int,
        max_allowed_statements: Optional[int],
        threads: Optional[Threads] = None,
    ) -> TSpy:
        """Adds an expectation that between `min_allowed_statements` and
        `max_allowed_statements` (inclusive, None for no limit) statements are
        executed from the baseline until `verify()` is called."""
        self._check_opened()

        expectation = Expectation(
            minimum_queries=min_allowed_statements,
            maximum_queries=max_allowed_statements,
            threads=self._resolve_threads(threads),
        )

        with self._lock:
            self._expectations.append(expectation)

        return self

    def verify_between(
        self: TSpy,
        min_allowed_statements: int,
        max_allowed_statements: Optional[int],
        threads: Optional[Threads] = None,
    ) -> TSpy:
        self._check_opened()

        expectation = Expectation(
            minimum_queries=min_allowed_statements,
            maximum_queries=max_allowed_statements,
            threads=self._resolve_threads(threads),
        )

        if error := expectation.validate_against(self):
            raise error

        return self

    def get_wrong_number_of_queries_error(self) -> Optional[WrongNumberOfQueriesError]:
        """Checks every expectation without raising.

        Returns None when all of them hold, otherwise the first violation with
        the remaining ones chained through `__cause__`.
        """
        self._check_opened()

        first_error: Optional[WrongNumberOfQueriesError] = None
        last_error: Optional[WrongNumberOfQueriesError] = None

        for expectation in self.expectations:
            error = expectation.validate_against(self)
            if error is None:
                continue

            if last_error is None:
                first_error = error
            else:
                last_error.__cause__ = error

            last_error = error

        return first_error

    def close(self):
        """Verifies the expectations and stops observing statements.

        The spy is unregistered and marked closed even when verification
        fails; the failure is raised afterwards. Closing twice raises
        SpyClosedError.
        """
        self._check_opened()

        try:
            self.verify()
        finally:
            self._counters.observers.unregister(self._reference)

            with self._lock:
                self._closed = True
                self._close_stack = capture_stack()

            logger.debug("Closed %r", self)

    def execute(self: TSpy, work: Callable[..., Any], *args, **kwargs) -> TSpy:
        """Calls `work` and verifies the expectations afterwards.

        If `work` raises, the expectations are still verified and a failure
        is attached to the raised exception rather than replacing it.
        """
        self._check_opened()
        self._call_and_verify(work, *args, **kwargs)
        return self

    def run(self: TSpy, work: Callable[[], Any]) -> TSpy:
        return self.execute(work)

    def call(self, work: Callable[..., V], *args, **kwargs) -> "SpyWithValue[V]":
        """Like `execute()`, but returns the result of `work` as
        `SpyWithValue.value`. The returned spy shares this spy's baseline."""
        self._check_opened()
        value = self._call_and_verify(work, *args, **kwargs)

        return SpyWithValue(
            value=value,
            initial_queries=self._initial_queries,
            initial_thread_local_queries=self._initial_thread_local_queries,
            counters=self._counters,
            executed_sqls=self.executed_sqls,
        )

    def _call_and_verify(self, work: Callable[..., V], *args, **kwargs) -> V:
        try:
            result = work(*args, **kwargs)
        except Exception as exception:
            try:
                error = self.get_wrong_number_of_queries_error()
            except SnifferError as sniffer_error:
                error = sniffer_error

            if error:
                self._attach_to_exception(exception, error)
            raise

        self.verify()
        return result

    def _attach_to_exception(
        self, exception: BaseException, error: SnifferError
    ):
        if not add_suppressed(exception, error):
            logger.error(
                "Unable to attach query verification failure to %r",
                exception,
                exc_info=error,
            )

    def _resolve_threads(self, threads: Optional[Threads]) -> Threads:
        if threads is None:
            return self.default_threads

        return Threads.parse(threads)

    def _check_opened(self):
        if self._closed:
            raise SpyClosedError("Spy is closed", self._close_stack)


class SpyWithValue(Spy, Generic[V]):
    """A spy carrying the value returned by the work passed to `Spy.call()`."""

    def __init__(self, value: V, **kwargs):
        self._value = value
        super().__init__(**kwargs)

    @property
    def value(self) -> V:
        return self._value
