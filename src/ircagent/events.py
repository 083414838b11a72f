"""Typed transport events and dispatcher.

The pydle client translates its callbacks into these events immediately, so
core logic never depends on the transport library's callback shapes.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass
from typing import Any, Literal, Protocol

from loguru import logger


@dataclass
class Registered:
    """Server accepted our registration (welcome + MOTD complete)."""

    nick: str


@dataclass
class ChatMessage:
    """PRIVMSG to a channel or to us."""

    target: str
    nick: str
    text: str


@dataclass
class Membership:
    """Someone joined or left a channel."""

    channel: str
    nick: str
    kind: Literal["join", "part"]


@dataclass
class NickChange:
    old: str
    new: str


@dataclass
class JoinRejected:
    """Server refused our JOIN (banned, invite-only, full, bad key, ...)."""

    channel: str
    reason: str


@dataclass
class ServerNotice:
    """Server announcement: message of the day or channel topic."""

    kind: Literal["motd", "topic"]
    text: str
    channel: str | None = None


@dataclass
class Closed:
    """Connection closed, solicited or not."""

    expected: bool


@dataclass
class TransportFailure:
    """Socket-level failure reported by the transport."""

    message: str


class EventTarget(Protocol):
    """Listener interface: accept_event + push_event."""

    def accept_event(self, source: str, evt: object) -> bool:
        """Return True if this target wants the event."""
        ...

    def push_event(self, source: str, evt: object) -> None:
        """Handle the event."""
        ...


def event(type_name: str):
    """Decorator to mark a factory as producing an event with a given type."""

    def decorator(f: Any) -> Any:
        @functools.wraps(f)
        def wrapper(*args: Any, **kwargs: Any) -> tuple[str, object]:
            evt = f(*args, **kwargs)
            return (type_name, evt)

        wrapper.TYPE = type_name
        return wrapper

    return decorator


@event("registered")
def registered(nick: str) -> Registered:
    return Registered(nick=nick)


@event("chat_message")
def chat_message(target: str, nick: str, text: str) -> ChatMessage:
    return ChatMessage(target=target, nick=nick, text=text)


@event("join")
def join(channel: str, nick: str) -> Membership:
    return Membership(channel=channel, nick=nick, kind="join")


@event("part")
def part(channel: str, nick: str) -> Membership:
    return Membership(channel=channel, nick=nick, kind="part")


@event("nick_change")
def nick_change(old: str, new: str) -> NickChange:
    return NickChange(old=old, new=new)


@event("join_rejected")
def join_rejected(channel: str, reason: str) -> JoinRejected:
    return JoinRejected(channel=channel, reason=reason)


@event("motd")
def motd(text: str) -> ServerNotice:
    return ServerNotice(kind="motd", text=text)


@event("topic")
def topic(channel: str, text: str) -> ServerNotice:
    return ServerNotice(kind="topic", text=text, channel=channel)


@event("closed")
def closed(expected: bool) -> Closed:
    return Closed(expected=expected)


@event("transport_failure")
def transport_failure(message: str) -> TransportFailure:
    return TransportFailure(message=message)


class Dispatcher:
    """Delivers events to every registered target that accepts them."""

    def __init__(self) -> None:
        self._targets: list[EventTarget] = []

    def register(self, target: EventTarget) -> None:
        """Register a target. Registering the same target twice is a no-op."""
        if target not in self._targets:
            self._targets.append(target)

    def unregister(self, target: EventTarget) -> None:
        if target in self._targets:
            self._targets.remove(target)

    def clear(self) -> None:
        self._targets.clear()

    def dispatch(self, source: str, evt: object) -> None:
        """Dispatch event to all targets that accept it."""
        for target in list(self._targets):
            try:
                if target.accept_event(source, evt):
                    target.push_event(source, evt)
            except Exception as exc:
                logger.exception("Failed to pass event to target {}: {}", target, exc)
