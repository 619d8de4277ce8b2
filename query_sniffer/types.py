import enum
from typing import TYPE_CHECKING, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

if TYPE_CHECKING:
    from query_sniffer.exceptions import WrongNumberOfQueriesError
    from query_sniffer.spies import Spy


class Threads(enum.Enum):
    """Which threads' statements a count considers."""

    CURRENT = "current thread"
    OTHERS = "other threads"
    ANY = "any thread"

    @classmethod
    def parse(cls, value: "Threads | str") -> "Threads":
        if isinstance(value, cls):
            return value

        try:
            return cls[value.upper()]
        except KeyError:
            raise ValueError(f"Unknown threads {value!r}") from None


class Expectation(BaseModel):
    model_config = ConfigDict(frozen=True)

    minimum_queries: int = Field(ge=0)
    # None means there is no upper bound
    maximum_queries: Optional[int] = None
    threads: Threads = Threads.CURRENT

    @model_validator(mode="after")
    def check_range(self) -> "Expectation":
        if (
            self.maximum_queries is not None
            and self.maximum_queries < self.minimum_queries
        ):
            raise ValueError(
                f"maximum_queries ({self.maximum_queries}) must not be lower than "
                f"minimum_queries ({self.minimum_queries})"
            )

        return self

    def matches(self, num_queries: int) -> bool:
        if num_queries < self.minimum_queries:
            return False

        return self.maximum_queries is None or num_queries <= self.maximum_queries

    def validate_against(self, spy: "Spy") -> Optional["WrongNumberOfQueriesError"]:
        """Returns the error describing the mismatch, or None if the spy's
        current count for `threads` is within range."""
        from query_sniffer.exceptions import WrongNumberOfQueriesError

        num_queries = spy.executed_statements(threads=self.threads)
        if self.matches(num_queries):
            return None

        return WrongNumberOfQueriesError(
            threads=self.threads,
            minimum_queries=self.minimum_queries,
            maximum_queries=self.maximum_queries,
            num_queries=num_queries,
            executed_sqls=spy.executed_sqls,
        )


def expectation_bounds(
    value: Optional[int] = None,
    at_least: Optional[int] = None,
    at_most: Optional[int] = None,
) -> tuple[int, Optional[int]]:
    """Converts declarative arguments into a (minimum, maximum) pair.

    `value` pins an exact count and can't be combined with the bounds.
    """
    if value is not None:
        if at_least is not None or at_most is not None:
            raise ValueError("value can't be combined with at_least or at_most")

        return value, value

    if at_least is None and at_most is None:
        raise ValueError("One of value, at_least or at_most must be given")

    return at_least or 0, at_most
