"""Profile configuration: servers + named connection profiles (read-only).

The file is loaded with ``yaml.safe_load``; YAML is a superset of JSON so
both formats are accepted. Keys may be camelCase or snake_case.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from loguru import logger

from ircagent.errors import ProfileNotFoundError, UnknownServerReferenceError

MAX_NICK_LENGTH = 8
DEFAULT_PORT = 6667
CONNECT_TIMEOUT = 10.0
MESSAGE_QUIET_SECONDS = 1.0
MEMBERSHIP_QUIET_SECONDS = 2.0

AGENT_HOME = Path.home() / ".pi" / "agent"
DEFAULT_CONFIG_FILE = AGENT_HOME / "irc" / "config.json"


def _pick(data: dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


@dataclass(frozen=True)
class Server:
    host: str
    port: int = DEFAULT_PORT
    ssl: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Server:
        return cls(
            host=str(data["host"]),
            port=int(_pick(data, "port", default=DEFAULT_PORT)),
            ssl=bool(_pick(data, "ssl", "tls", default=False)),
        )


@dataclass(frozen=True)
class Profile:
    server: str
    nick: str
    channels: tuple[str, ...] = field(default_factory=tuple)
    username: str | None = None
    realname: str | None = None
    nickserv_pass: str | None = None
    auto_connect: bool = True
    agents_file: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Profile:
        return cls(
            server=str(data["server"]),
            nick=str(data["nick"]),
            channels=tuple(str(c) for c in data.get("channels") or ()),
            username=_pick(data, "username"),
            realname=_pick(data, "realname"),
            nickserv_pass=_pick(data, "nickservPass", "nickserv_pass"),
            auto_connect=bool(_pick(data, "autoConnect", "auto_connect", default=True)),
            agents_file=_pick(data, "agentsFile", "agents_file"),
        )


@dataclass(frozen=True)
class ResolvedProfile:
    """A profile paired with the server entry it references."""

    name: str
    profile: Profile
    server: Server


def load_config(path: str | Path) -> dict[str, Any]:
    """Load the profile file. Missing file yields empty servers/profiles."""
    path = Path(path)
    empty: dict[str, Any] = {"servers": {}, "profiles": {}}
    if not path.exists():
        logger.debug("IRC config file not found: {}", path)
        return empty

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        logger.error("Failed to parse IRC config {}: {}", path, exc)
        raise
    if not isinstance(data, dict):
        logger.warning("IRC config {} has invalid structure (expected mapping)", path)
        return empty
    data.setdefault("servers", {})
    data.setdefault("profiles", {})
    return data


def load_config_with_env(path: str | Path) -> dict[str, Any]:
    """Load .env (when present) before reading the profile file."""
    from dotenv import load_dotenv

    load_dotenv()
    return load_config(path)


def default_config_path() -> Path:
    env_path = os.environ.get("IRC_CONFIG")
    return Path(env_path).expanduser() if env_path else DEFAULT_CONFIG_FILE


class ProfileResolver:
    """Resolves profile names against the servers defined in the same file."""

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(path).expanduser().resolve() if path else default_config_path()

    @property
    def path(self) -> Path:
        return self._path

    def set_path(self, path: str | Path) -> None:
        self._path = Path(path).expanduser().resolve()

    def resolve(self, name: str) -> ResolvedProfile:
        """Return the profile and its server.

        Raises ProfileNotFoundError if no such profile exists and
        UnknownServerReferenceError if it names a server with no entry.
        """
        config = load_config_with_env(self._path)
        raw_profile = (config.get("profiles") or {}).get(name)
        if raw_profile is None:
            raise ProfileNotFoundError(
                f'IRC profile "{name}" not found', details={"profile": name}
            )
        profile = Profile.from_dict(raw_profile)
        raw_server = (config.get("servers") or {}).get(profile.server)
        if raw_server is None:
            raise UnknownServerReferenceError(
                f'Profile "{name}" references unknown server "{profile.server}"',
                details={"profile": name, "server": profile.server},
            )
        return ResolvedProfile(name=name, profile=profile, server=Server.from_dict(raw_server))


def read_agents_file(profile: Profile, agent_home: Path = AGENT_HOME) -> str | None:
    """Read the profile's extra system-prompt file, relative to agent_home.

    Unreadable files are logged and skipped; they never block a connection.
    """
    if not profile.agents_file:
        return None
    path = agent_home / profile.agents_file
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        logger.warning("Could not load agents file {}: {}", path, exc)
        return None
