import logging
import threading

from query_sniffer.registry import ObserverRegistry, registry

logger = logging.getLogger(__name__)


class ExecutionCounters:
    """Counts executed statements globally and per thread.

    `record()` is called by the interception layer once for every statement
    and must never raise. The reset methods are meant for single threaded
    test setup; calling them while other threads record gives undefined counts.
    """

    def __init__(self, observers: ObserverRegistry):
        self.observers = observers

        self._lock = threading.Lock()
        self._executed_statements = 0
        self._thread_local = threading.local()

    def record(self, sql: str):
        with self._lock:
            self._executed_statements += 1

        self._thread_local.executed_statements = (
            self.thread_local_executed_statements() + 1
        )

        try:
            self.observers.broadcast(sql)
        except Exception:
            logger.exception("Failed to notify spies about %r", sql)

    def executed_statements(self) -> int:
        with self._lock:
            return self._executed_statements

    def thread_local_executed_statements(self) -> int:
        return getattr(self._thread_local, "executed_statements", 0)

    def reset(self):
        logger.warning("Resetting the global executed statements counter")

        with self._lock:
            self._executed_statements = 0

    def reset_thread_local(self):
        self._thread_local.executed_statements = 0


execution_counters = ExecutionCounters(observers=registry)
