"""Contracts consumed by the core: the agent messaging API and an optional UI."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Literal, Protocol

from loguru import logger

NotifyLevel = Literal["info", "warning", "error"]


class AgentSink(ABC):
    """Where routed IRC traffic ends up."""

    @abstractmethod
    def deliver_steer(self, text: str) -> None:
        """Interrupt the agent's current task; always triggers a turn."""
        ...

    @abstractmethod
    def deliver_context(
        self,
        text: str,
        *,
        trigger_turn: bool = False,
        tag: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Queue background context, optionally also triggering a turn."""
        ...


class StatusUI(Protocol):
    """Host UI. Optional: when absent, every UI call is skipped."""

    def notify(self, message: str, level: NotifyLevel = "info") -> None: ...

    def set_status(self, key: str, text: str) -> None: ...


class LoggingAgent(AgentSink):
    """Agent sink that writes deliveries to the log (CLI host)."""

    def deliver_steer(self, text: str) -> None:
        logger.info("STEER | {}", text)

    def deliver_context(
        self,
        text: str,
        *,
        trigger_turn: bool = False,
        tag: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        logger.info("CONTEXT{} [{}] | {}", " (turn)" if trigger_turn else "", tag or "-", text)


class ConsoleUI:
    """StatusUI that logs notifications at the matching level."""

    def __init__(self) -> None:
        self.status: dict[str, str] = {}

    def notify(self, message: str, level: NotifyLevel = "info") -> None:
        logger.log(level.upper(), message)

    def set_status(self, key: str, text: str) -> None:
        if text:
            self.status[key] = text
        else:
            self.status.pop(key, None)
