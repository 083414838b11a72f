"""Delivery decisions: steer the agent now, or add to its context."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ircagent.events import ServerNotice


class DeliveryMode(Enum):
    STEER = "steer"
    CONTEXT = "context"


@dataclass(frozen=True)
class RoutingDecision:
    """How a flushed unit reaches the agent. Derived per unit, never stored."""

    mode: DeliveryMode
    trigger_turn: bool
    content: str
    tag: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


def is_mentioned(text: str, nick: str) -> bool:
    """Literal, case-sensitive ``@nick`` substring test."""
    return f"@{nick}" in text


def route_chat(
    target: str, nick: str, text: str, current_nick: str, *, is_dm: bool | None = None
) -> RoutingDecision:
    """Route an aggregated chat unit.

    Messages addressed to our own nick are direct messages and always steer.
    Pass ``is_dm`` when that was decided on arrival, before a later nick change.
    Channel messages are context; a mention of ``@<current_nick>`` still wakes
    the agent but keeps the context framing.
    """
    if is_dm is None:
        is_dm = target == current_nick
    if is_dm:
        return RoutingDecision(
            mode=DeliveryMode.STEER,
            trigger_turn=True,
            content=f"IRC DM from {nick}: {text}",
        )
    return RoutingDecision(
        mode=DeliveryMode.CONTEXT,
        trigger_turn=is_mentioned(text, current_nick),
        content=f"[{target}] {nick}: {text}",
        tag="irc_channel_message",
        metadata={"channel": target, "nick": nick, "message": text},
    )


def render_membership(channel: str, nick: str, kind: str) -> str:
    verb = "joined" if kind == "join" else "left"
    return f"{nick} {verb} {channel}"


def route_membership(channel: str, lines: list[str]) -> RoutingDecision:
    """Join/part churn is passive context, one line per event."""
    return RoutingDecision(
        mode=DeliveryMode.CONTEXT,
        trigger_turn=False,
        content="\n".join(lines),
        tag="irc_join_part",
        metadata={"channel": channel, "events": list(lines)},
    )


def route_notice(notice: ServerNotice) -> RoutingDecision | None:
    """MOTD and topic are passive context. Blank text yields nothing."""
    if not notice.text or not notice.text.strip():
        return None
    if notice.kind == "motd":
        return RoutingDecision(
            mode=DeliveryMode.CONTEXT,
            trigger_turn=False,
            content=f"Server MOTD:\n{notice.text}",
            tag="irc_motd",
            metadata={"motd": notice.text},
        )
    return RoutingDecision(
        mode=DeliveryMode.CONTEXT,
        trigger_turn=False,
        content=f"Topic for {notice.channel}: {notice.text}",
        tag="irc_channel_topic",
        metadata={"channel": notice.channel, "topic": notice.text},
    )
