"""Host integration: auto-connect on start, prompt injection, shutdown, commands."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from loguru import logger

from ircagent.agent import AgentSink, StatusUI
from ircagent.commands import CommandResult, dispatch, parse_command
from ircagent.config import AGENT_HOME, MAX_NICK_LENGTH, ProfileResolver, read_agents_file
from ircagent.errors import IRCAgentError
from ircagent.session import SessionContext, load_snapshot
from ircagent.supervisor import ConnectionSupervisor, ConnectParams


class IRCExtension:
    """Wires a ConnectionSupervisor into an agent host.

    Nothing here raises into the host: failures become UI notifications or
    CommandResults.
    """

    def __init__(
        self,
        agent: AgentSink,
        ui: StatusUI | None = None,
        *,
        resolver: ProfileResolver | None = None,
        supervisor: ConnectionSupervisor | None = None,
        agent_home: Path = AGENT_HOME,
        snapshot_path: str | Path | None = None,
    ) -> None:
        self._ui = ui
        self._resolver = resolver or ProfileResolver()
        self._agent_home = agent_home
        self.supervisor = supervisor or ConnectionSupervisor(
            agent, ui, snapshot_path=snapshot_path
        )
        self.previous_session: SessionContext | None = (
            load_snapshot(snapshot_path) if snapshot_path else None
        )

    def _notify(self, message: str, level: str = "info") -> None:
        if self._ui is not None:
            self._ui.notify(message, level)

    async def on_session_start(
        self, profile_name: str | None, config_path: str | Path | None = None
    ) -> None:
        """Auto-connect with a profile. Errors are reported, never raised."""
        if config_path:
            self._resolver.set_path(config_path)
        if not profile_name:
            return

        try:
            resolved = self._resolver.resolve(profile_name)
        except IRCAgentError as exc:
            logger.error("IRC auto-connect: {}", exc)
            self._notify(str(exc), "error")
            return
        except Exception as exc:
            logger.exception("IRC auto-connect with profile {} failed", profile_name)
            self._notify(f'Failed to auto-connect with profile "{profile_name}": {exc}', "error")
            return

        profile, server = resolved.profile, resolved.server
        if len(profile.nick) > MAX_NICK_LENGTH:
            shortened = profile.nick[:MAX_NICK_LENGTH]
            self._notify(
                f'Profile "{profile_name}" has nickname "{profile.nick}" which is too long '
                f'(max {MAX_NICK_LENGTH} chars).\nSuggested: "{shortened}"\n\n'
                "Please update the profile with a shorter nickname.",
                "error",
            )
            return

        if not profile.auto_connect:
            self._notify(
                f'IRC profile "{profile_name}" loaded but autoConnect=false. '
                f'Use irc connect with profile "{profile_name}" to connect manually.'
            )
            return

        if self.supervisor.is_connected:
            return

        self.supervisor.prompt_addendum = read_agents_file(profile, self._agent_home)
        self._notify(
            f"Auto-connecting to {server.host}:{server.port} as {profile.nick} "
            f"(profile: {profile_name})"
        )
        try:
            await self.supervisor.connect(ConnectParams.from_profile(resolved))
        except IRCAgentError as exc:
            logger.error("IRC auto-connect with profile {} failed: {}", profile_name, exc)
            self._notify(f'Failed to auto-connect with profile "{profile_name}": {exc}', "error")

    def before_agent_start(self, system_prompt: str) -> str | None:
        """Return the system prompt extended by the profile's agents file, if any."""
        addendum = self.supervisor.prompt_addendum
        if not addendum:
            return None
        return f"{system_prompt}\n\n{addendum}"

    async def on_session_shutdown(self) -> None:
        if self.supervisor.is_connected:
            await self.supervisor.disconnect("Session ended")

    async def execute(self, action: str, params: dict[str, Any] | None = None) -> CommandResult:
        """Tool entrypoint."""
        return await dispatch(self.supervisor, action, params, self._resolver)

    async def handle_command(self, text: str) -> CommandResult | None:
        """Slash-command entrypoint: parse, dispatch, and report to the UI."""
        try:
            parsed = parse_command(text)
        except IRCAgentError as exc:
            self._notify(str(exc), "error")
            return CommandResult.from_error(exc)

        if parsed is None:
            self._notify(self.status_text())
            return None

        action, params = parsed
        result = await self.execute(action, params)
        self._notify(result.text, "error" if result.is_error else "info")
        return result

    def status_text(self) -> str:
        session = self.supervisor.session
        if session is None or not session.connected:
            return "Not connected to IRC"
        return (
            f"Connected: {session.host}:{session.port}\n"
            f"Nick: {session.nick}\n"
            f"Channels: {', '.join(session.channels)}"
        )
