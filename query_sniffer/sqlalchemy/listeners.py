import logging
from typing import Any, Union

import sqlalchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.engine.base import Connection

from query_sniffer.counters import execution_counters

logger = logging.getLogger(__name__)

Target = Union[Engine, type[Engine]]

EVENT_NAME = "before_cursor_execute"


def before_cursor_execute(
    conn: Connection,
    cursor: Any,
    statement: str,
    parameters: Any,
    context: Any,
    executemany: bool,
):
    # An executemany() is a single round trip, so it counts once
    execution_counters.record(statement)


def before_engine_cursor_execute(
    conn: Connection,
    cursor: Any,
    statement: str,
    parameters: Any,
    context: Any,
    executemany: bool,
):
    # The Engine class listener already records statements of every engine
    if event.contains(Engine, EVENT_NAME, before_cursor_execute):
        return

    execution_counters.record(statement)


def get_listener(target: Target):
    if isinstance(target, type):
        return before_cursor_execute

    return before_engine_cursor_execute


def is_instrumented(target: Target = Engine) -> bool:
    return event.contains(target, EVENT_NAME, get_listener(target))


def instrument(target: Target = Engine):
    """Counts every statement executed through `target`.

    `target` is either a single engine or the `Engine` class, in which case
    every engine in the process is counted. Engines instrumented on their own
    and through the class still record each statement once, whatever the
    order in which they were instrumented.
    """
    if is_instrumented(target):
        return

    event.listen(target, EVENT_NAME, get_listener(target))
    logger.info("Instrumented %r", target)


def uninstrument(target: Target = Engine):
    if not is_instrumented(target):
        return

    event.remove(target, EVENT_NAME, get_listener(target))
    logger.info("Uninstrumented %r", target)


def create_engine(url: Union[str, sqlalchemy.URL], **kwargs) -> Engine:
    """`sqlalchemy.create_engine()` returning an instrumented engine."""
    engine = sqlalchemy.create_engine(url, **kwargs)
    instrument(engine)
    return engine
