"""Action surface: connect, disconnect, info, send, change_nick, list_channels, join, leave.

Every action returns a CommandResult; errors never escape to the caller.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from ircagent.config import DEFAULT_PORT, ProfileResolver
from ircagent.errors import IRCAgentError, MissingParameterError, UnknownActionError, UsageError
from ircagent.supervisor import ConnectionSupervisor, ConnectParams

ACTIONS: dict[str, str] = {
    "info": "Show IRC connection status",
    "send": "Send message to channel/user",
    "join": "Join a channel",
    "leave": "Leave a channel",
    "change_nick": "Change nickname",
    "list_channels": "List joined channels",
    "connect": "Connect to IRC server",
    "disconnect": "Disconnect from IRC",
}

_SUPPORTED = ", ".join(ACTIONS)


@dataclass
class CommandResult:
    """Outcome text plus structured details (``details["error"]`` on failure)."""

    text: str
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def is_error(self) -> bool:
        return "error" in self.details

    @classmethod
    def from_error(cls, exc: IRCAgentError) -> CommandResult:
        return cls(text=f"Error: {exc}", details={"error": exc.code, **exc.details})


Handler = Callable[
    [ConnectionSupervisor, dict[str, Any], ProfileResolver | None], Awaitable[CommandResult]
]


def _require(params: dict[str, Any], key: str, param: str, message: str) -> Any:
    value = params.get(key)
    if not value:
        raise MissingParameterError(param, message)
    return value


async def _connect(sup, params, resolver) -> CommandResult:
    profile_name = params.get("profile")
    if profile_name:
        resolver = resolver or ProfileResolver()
        connect_params = ConnectParams.from_profile(resolver.resolve(profile_name))
    else:
        if not params.get("host") or not params.get("nickname"):
            raise MissingParameterError(
                "connect_params", "'connect' requires 'host' and 'nickname' parameters"
            )
        connect_params = ConnectParams(
            host=params["host"],
            port=int(params.get("port") or DEFAULT_PORT),
            nick=params["nickname"],
            channels=tuple(params.get("channels") or ()),
        )

    summary = await sup.connect(connect_params)
    return CommandResult(
        text=(
            f"Connected to {summary.host}:{summary.port} as {summary.nick}\n"
            f"Joining channels: {', '.join(summary.channels)}"
        ),
        details=summary.to_details(),
    )


async def _disconnect(sup, params, resolver) -> CommandResult:
    await sup.disconnect()
    return CommandResult(text="Disconnected from IRC")


async def _info(sup, params, resolver) -> CommandResult:
    s = sup.summary()
    return CommandResult(
        text=(
            f"You are connected to IRC as: {s.nick}\n"
            f"Server: {s.host}:{s.port}\n"
            f"Your channels: {', '.join(s.channels) or 'none'}"
        ),
        details={"host": s.host, "port": s.port, "nick": s.nick, "channels": list(s.channels)},
    )


async def _send(sup, params, resolver) -> CommandResult:
    sup.require_connected()
    target = _require(params, "target", "target", "'send' requires a 'target' (channel or username)")
    message = _require(params, "message", "message", "'send' requires a 'message'")
    await sup.send(target, message)
    return CommandResult(text=f"Sent to {target}: {message}", details={"target": target, "message": message})


async def _change_nick(sup, params, resolver) -> CommandResult:
    sup.require_connected()
    new_nick = _require(params, "new_nick", "new_nick", "'change_nick' requires a 'new_nick' parameter")
    old_nick = await sup.change_nick(new_nick)
    return CommandResult(
        text=f"Requesting nickname change from {old_nick} to {new_nick}",
        details={"old_nick": old_nick, "new_nick": new_nick},
    )


async def _list_channels(sup, params, resolver) -> CommandResult:
    s = sup.summary()
    return CommandResult(
        text=f"Connected to {s.host} as {s.nick}\nChannels: {', '.join(s.channels) or 'none'}",
        details={"host": s.host, "nick": s.nick, "channels": list(s.channels)},
    )


async def _join(sup, params, resolver) -> CommandResult:
    sup.require_connected()
    channel = _require(params, "channel", "channel", "'join' requires a 'channel' parameter")
    channel = await sup.join(channel)
    return CommandResult(text=f"Requested join to {channel}", details={"channel": channel})


async def _leave(sup, params, resolver) -> CommandResult:
    sup.require_connected()
    channel = _require(params, "channel", "channel", "'leave' requires a 'channel' parameter")
    channel = await sup.leave(channel)
    return CommandResult(text=f"Left channel {channel}", details={"channel": channel})


HANDLERS: dict[str, Handler] = {
    "connect": _connect,
    "disconnect": _disconnect,
    "info": _info,
    "send": _send,
    "change_nick": _change_nick,
    "list_channels": _list_channels,
    "join": _join,
    "leave": _leave,
}


async def dispatch(
    supervisor: ConnectionSupervisor,
    action: str,
    params: dict[str, Any] | None = None,
    resolver: ProfileResolver | None = None,
) -> CommandResult:
    """Run one action against the supervisor."""
    handler = HANDLERS.get(action)
    try:
        if handler is None:
            raise UnknownActionError(
                f'Unknown action "{action}". Supported: {_SUPPORTED}', details={"action": action}
            )
        return await handler(supervisor, params or {}, resolver)
    except IRCAgentError as exc:
        logger.debug("IRC action {} failed: {} ({})", action, exc, exc.code)
        return CommandResult.from_error(exc)


def parse_command(text: str) -> tuple[str, dict[str, Any]] | None:
    """Parse ``<action> [args...]`` into (action, params).

    Returns None for empty input (show status). Raises UsageError or
    UnknownActionError.
    """
    args = text.split()
    if not args:
        return None
    action, rest = args[0], args[1:]

    if action in ("info", "list_channels", "disconnect"):
        return action, {}
    if action == "send":
        if len(rest) < 2:
            raise UsageError("Usage: irc send <target> <message>")
        return action, {"target": rest[0], "message": " ".join(rest[1:])}
    if action in ("join", "leave"):
        if not rest:
            raise UsageError(f"Usage: irc {action} <channel>")
        return action, {"channel": rest[0]}
    if action == "change_nick":
        if not rest:
            raise UsageError("Usage: irc change_nick <nickname>")
        return action, {"new_nick": rest[0]}
    if action == "connect":
        if len(rest) < 2:
            raise UsageError("Usage: irc connect <host> <nickname> [channels...]")
        return action, {"host": rest[0], "nickname": rest[1], "channels": rest[2:]}
    raise UnknownActionError(
        f"Unknown action: {action}\nSupported: {_SUPPORTED}", details={"action": action}
    )


def complete_action(prefix: str) -> list[tuple[str, str]] | None:
    """Completions for the action word: (value, label) pairs, or None."""
    prefix = prefix.lower()
    items = [
        (name, f"{name}: {label}") for name, label in ACTIONS.items() if name.startswith(prefix)
    ]
    return items or None
