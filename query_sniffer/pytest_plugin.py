"""pytest integration.

Enable it from a conftest.py:

    pytest_plugins = ["query_sniffer.pytest_plugin"]

Then either mark tests:

    @pytest.mark.sniffer_expectation(at_most=2)
    def test_list_planets(session):
        ...

    @pytest.mark.no_queries_allowed
    class TestCachedLookups:
        ...

or use the `sniffer` fixture, which is verified when the test finishes.
"""
from typing import Iterator, Optional

import pytest

from query_sniffer.spies import Spy
from query_sniffer.types import Threads, expectation_bounds


def pytest_addoption(parser: pytest.Parser):
    parser.addini(
        "sniffer_threads",
        help="Threads counted by sniffer markers that don't pass threads "
        "(CURRENT, OTHERS or ANY)",
        default="CURRENT",
    )


def pytest_configure(config: pytest.Config):
    config.addinivalue_line(
        "markers",
        "sniffer_expectation(value=None, at_least=None, at_most=None, threads=None): "
        "verify the number of SQL statements executed by the test",
    )
    config.addinivalue_line(
        "markers",
        "no_queries_allowed(threads=None): fail the test if it executes SQL statements",
    )


def get_default_threads(config: pytest.Config) -> Threads:
    return Threads.parse(config.getini("sniffer_threads"))


def get_expectations(
    item: pytest.Item,
) -> list[tuple[int, Optional[int], Threads]]:
    default_threads = get_default_threads(item.config)
    expectations = []

    # Markers from the function, its class (and base classes) and module
    for marker in item.iter_markers():
        if marker.name == "sniffer_expectation":
            value = marker.args[0] if marker.args else marker.kwargs.get("value")
            minimum, maximum = expectation_bounds(
                value=value,
                at_least=marker.kwargs.get("at_least"),
                at_most=marker.kwargs.get("at_most"),
            )
        elif marker.name == "no_queries_allowed":
            minimum, maximum = 0, 0
        else:
            continue

        threads = marker.kwargs.get("threads")
        expectations.append(
            (
                minimum,
                maximum,
                Threads.parse(threads) if threads is not None else default_threads,
            )
        )

    return expectations


@pytest.hookimpl(wrapper=True)
def pytest_runtest_call(item: pytest.Item):
    expectations = get_expectations(item)
    if not expectations:
        return (yield)

    spy = Spy()
    for minimum, maximum, threads in expectations:
        spy.expect_between(minimum, maximum, threads=threads)

    with spy:
        return (yield)


@pytest.fixture
def sniffer(request: pytest.FixtureRequest) -> Iterator[Spy]:
    spy = Spy()
    spy.default_threads = get_default_threads(request.config)

    yield spy

    if not spy.closed:
        spy.close()
