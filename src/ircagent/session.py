"""Session record for the live connection, and its on-disk snapshot."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from loguru import logger


class ConnectionState(Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSED = "closed"


def normalize_channel(name: str) -> str:
    """Ensure a channel name carries the ``#`` prefix."""
    return name if name.startswith("#") else f"#{name}"


@dataclass
class SessionContext:
    """Mutable state of the active session. Written only by the supervisor.

    ``nick`` and ``channels`` are client-predicted: channel changes apply as
    soon as they are requested, nick changes once the server confirms them.
    """

    host: str
    port: int
    nick: str
    channels: list[str] = field(default_factory=list)
    connected: bool = False
    profile_name: str | None = None

    def add_channel(self, channel: str) -> bool:
        """Append channel if absent. Returns True if it was added."""
        if channel in self.channels:
            return False
        self.channels.append(channel)
        return True

    def remove_channel(self, channel: str) -> bool:
        if channel not in self.channels:
            return False
        self.channels.remove(channel)
        return True

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["channels"] = list(self.channels)
        if self.profile_name is None:
            del data["profile_name"]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionContext:
        return cls(
            host=str(data["host"]),
            port=int(data["port"]),
            nick=str(data["nick"]),
            channels=[str(c) for c in data.get("channels") or []],
            connected=bool(data.get("connected", False)),
            profile_name=data.get("profile_name"),
        )


def save_snapshot(ctx: SessionContext | None, path: str | Path) -> None:
    """Write the session snapshot; an absent session removes the file."""
    path = Path(path)
    if ctx is None:
        path.unlink(missing_ok=True)
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(ctx.to_dict(), f, sort_keys=False)


def load_snapshot(path: str | Path) -> SessionContext | None:
    """Read a session snapshot. Missing or malformed files yield None."""
    path = Path(path)
    if not path.exists():
        return None
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return SessionContext.from_dict(data)
    except (yaml.YAMLError, KeyError, TypeError, ValueError) as exc:
        logger.warning("Ignoring unreadable session snapshot {}: {}", path, exc)
        return None
