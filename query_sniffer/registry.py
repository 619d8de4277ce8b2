import logging
import threading
import weakref
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from query_sniffer.spies import Spy

logger = logging.getLogger(__name__)

SpyReference = weakref.ReferenceType


class ObserverRegistry:
    """Process-wide list of the spies that want to see executed statements.

    Spies are held through weak references only, so a spy dropped by its
    owner without being closed simply stops being notified.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._references: list["SpyReference[Spy]"] = []

    def __len__(self) -> int:
        with self._lock:
            return len(self._references)

    def register(self, spy: "Spy") -> "SpyReference[Spy]":
        reference = weakref.ref(spy)

        with self._lock:
            # Without statements there is no broadcast to drop collected spies
            self._references = [
                existing for existing in self._references if existing() is not None
            ]
            self._references.append(reference)

        logger.debug("Registered spy %#x", id(spy))
        return reference

    def unregister(self, reference: "SpyReference[Spy]"):
        with self._lock:
            self._references = [
                existing for existing in self._references if existing is not reference
            ]

        logger.debug("Unregistered spy reference %#x", id(reference))

    def broadcast(self, sql: str):
        """Appends `sql` to the log of every live spy, dropping collected ones."""
        with self._lock:
            alive = []

            for reference in self._references:
                spy = reference()
                if spy is None:
                    continue

                alive.append(reference)
                spy.add_executed_sql(sql)

            self._references = alive

    def live_spies(self) -> list["Spy"]:
        with self._lock:
            spies = [reference() for reference in self._references]

        return [spy for spy in spies if spy is not None]


registry = ObserverRegistry()
