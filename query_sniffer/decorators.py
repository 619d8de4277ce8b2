import functools
from typing import Callable, Optional

from query_sniffer.spies import Spy
from query_sniffer.types import Threads, expectation_bounds

EXPECTATIONS_ATTRIBUTE = "__sniffer_expectations__"
WRAPPER_ATTRIBUTE = "__sniffer_wrapper__"


def expectation(
    value: Optional[int] = None,
    at_least: Optional[int] = None,
    at_most: Optional[int] = None,
    threads: Threads = Threads.CURRENT,
):
    """Verifies the number of statements executed by every call of the
    decorated function.

    Stacking several decorators checks all of their ranges against a single
    spy per call. The decorated function itself is left untouched.
    """
    minimum, maximum = expectation_bounds(
        value=value, at_least=at_least, at_most=at_most
    )

    def expectation_decorator(func: Callable):
        expectations = [(minimum, maximum, threads)]

        # Only merge with our own wrapper; other wrappers copy its attributes
        # through functools.wraps but must keep their behavior
        if getattr(func, WRAPPER_ATTRIBUTE, None) is func:
            expectations.extend(getattr(func, EXPECTATIONS_ATTRIBUTE))
            func = func.__wrapped__

        @functools.wraps(func)
        def wrapped(*args, **kwargs):
            spy = Spy()
            for expected_minimum, expected_maximum, expected_threads in expectations:
                spy.expect_between(
                    expected_minimum, expected_maximum, threads=expected_threads
                )

            with spy:
                return func(*args, **kwargs)

        setattr(wrapped, EXPECTATIONS_ATTRIBUTE, tuple(expectations))
        setattr(wrapped, WRAPPER_ATTRIBUTE, wrapped)
        return wrapped

    return expectation_decorator


def no_queries_allowed(threads: Threads = Threads.CURRENT):
    return expectation(value=0, threads=threads)
