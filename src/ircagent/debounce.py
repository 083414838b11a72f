"""Keyed debounce buffer for bursts of inbound IRC events.

IRC has no multi-line framing, so a pasted block arrives as many discrete
lines. Each key buffers its payloads until a quiet interval passes with no new
record for that key; then the whole burst is handed to the consumer at once.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable, Hashable
from dataclasses import dataclass, field
from typing import Any

from loguru import logger


@dataclass
class Burst:
    """A flushed burst: every payload recorded for one key, in arrival order."""

    key: Hashable
    payloads: list[str]
    separator: str = "\n"

    @property
    def text(self) -> str:
        return self.separator.join(self.payloads)


@dataclass
class _Buffer:
    payloads: list[str] = field(default_factory=list)
    timer: asyncio.TimerHandle | None = None


class EventDebouncer:
    """Collapses same-key bursts into one consumer call.

    Every ``record`` cancels the key's pending timer and starts a new one, so
    a burst is flushed ``quiet_seconds`` after its *last* event. Keys never
    share a timer.
    """

    def __init__(
        self,
        quiet_seconds: float,
        consumer: Callable[[Burst], Any],
        *,
        separator: str = "\n",
        name: str = "debounce",
    ) -> None:
        self.quiet_seconds = quiet_seconds
        self._consumer = consumer
        self._separator = separator
        self._name = name
        self._buffers: dict[Hashable, _Buffer] = {}
        self._tasks: set[asyncio.Task] = set()

    def record(self, key: Hashable, payload: str) -> None:
        """Append payload to the key's buffer and restart its quiet timer."""
        loop = asyncio.get_running_loop()
        buffer = self._buffers.get(key)
        if buffer is None:
            buffer = self._buffers[key] = _Buffer()
        if buffer.timer is not None:
            buffer.timer.cancel()
        buffer.payloads.append(payload)
        buffer.timer = loop.call_later(self.quiet_seconds, self.flush, key)
        logger.debug(
            "{}: buffered {} for {!r} ({} pending)",
            self._name,
            payload[:80],
            key,
            len(buffer.payloads),
        )

    def flush(self, key: Hashable) -> None:
        """Hand the key's burst to the consumer and drop the buffer."""
        buffer = self._buffers.pop(key, None)
        if buffer is None or not buffer.payloads:
            return
        if buffer.timer is not None:
            buffer.timer.cancel()
        burst = Burst(key=key, payloads=buffer.payloads, separator=self._separator)
        logger.debug("{}: flushing {} event(s) for {!r}", self._name, len(burst.payloads), key)
        try:
            result = self._consumer(burst)
        except Exception as exc:
            logger.exception("{}: consumer failed for {!r}: {}", self._name, key, exc)
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._consumer_done)

    def _consumer_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.opt(exception=exc).error("{}: async consumer failed: {}", self._name, exc)

    def is_pending(self, key: Hashable) -> bool:
        return key in self._buffers

    def pending_keys(self) -> list[Hashable]:
        return list(self._buffers)

    def cancel_all(self) -> None:
        """Drop every pending burst without flushing."""
        for buffer in self._buffers.values():
            if buffer.timer is not None:
                buffer.timer.cancel()
        if self._buffers:
            logger.debug("{}: discarded {} pending burst(s)", self._name, len(self._buffers))
        self._buffers.clear()
