import threading
from typing import Any, Callable

from sqlalchemy import text

from tests.models import engine


def execute_statements(num: int, sql: str = "SELECT 1"):
    with engine.connect() as conn:
        for _ in range(num):
            conn.execute(text(sql))


def run_in_thread(work: Callable[[], Any]):
    """Runs `work` in a new thread and waits for it, re-raising its error."""
    errors: list[BaseException] = []

    def target():
        try:
            work()
        except BaseException as e:
            errors.append(e)

    thread = threading.Thread(target=target)
    thread.start()
    thread.join()

    if errors:
        raise errors[0]
