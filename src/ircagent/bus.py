"""Per-connection event bus.

The supervisor creates one Bus for each transport it builds and closes it on
teardown. A closed bus drops whatever the dead transport still publishes.
"""

from loguru import logger

from ircagent.events import Dispatcher, EventTarget

__all__ = ["Bus", "EventTarget"]


class Bus:
    def __init__(self) -> None:
        self._dispatcher = Dispatcher()
        self.closed = False

    def register(self, target: EventTarget) -> None:
        if self.closed:
            raise RuntimeError("Cannot register on a closed bus")
        self._dispatcher.register(target)

    def unregister(self, target: EventTarget) -> None:
        self._dispatcher.unregister(target)

    def close(self) -> None:
        """Detach every listener; later publishes are dropped."""
        self.closed = True
        self._dispatcher.clear()

    @property
    def _listeners(self) -> list[EventTarget]:
        return list(self._dispatcher._targets)

    def publish(self, source: str, evt: object) -> None:
        if self.closed:
            logger.debug("Dropping {} from {} on closed bus", type(evt).__name__, source)
            return
        self._dispatcher.dispatch(source, evt)
