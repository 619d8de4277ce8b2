import traceback
from typing import Iterator, Optional, Sequence

from query_sniffer.types import Threads


class SnifferError(Exception):
    pass


class WrongNumberOfQueriesError(SnifferError, AssertionError):
    """Raised when the number of executed statements is outside an expected range.

    Every violation found by a single verification pass is reachable through
    `__cause__`, see `chain()`.
    """

    def __init__(
        self,
        threads: Threads,
        minimum_queries: int,
        maximum_queries: Optional[int],
        num_queries: int,
        executed_sqls: Sequence[str] = (),
    ):
        self.threads = threads
        self.minimum_queries = minimum_queries
        self.maximum_queries = maximum_queries
        self.num_queries = num_queries
        self.executed_sqls = tuple(executed_sqls)

        super().__init__(self.build_message())

    def build_message(self) -> str:
        if self.maximum_queries is None:
            expected = f"at least {self.minimum_queries}"
        elif self.minimum_queries == self.maximum_queries:
            expected = f"exactly {self.minimum_queries}"
        else:
            expected = f"between {self.minimum_queries} and {self.maximum_queries}"

        lines = [
            f"Expected {expected} {self.threads.value} queries",
            f"Observed {self.num_queries} queries instead:",
            *self.executed_sqls,
        ]

        return "\n".join(lines)

    def chain(self) -> Iterator["WrongNumberOfQueriesError"]:
        error: Optional[BaseException] = self
        while isinstance(error, WrongNumberOfQueriesError):
            yield error
            error = error.__cause__


class SpyClosedError(SnifferError, RuntimeError):
    def __init__(self, message: str, close_stack: Optional[traceback.StackSummary]):
        self.close_stack = close_stack

        if close_stack:
            message = (
                f"{message}; it was closed at:\n{''.join(close_stack.format())}"
            )

        super().__init__(message)


class CounterInvariantError(SnifferError, RuntimeError):
    pass
