"""Connection supervisor: owns the single live IRC connection and its session.

State machine::

    IDLE -> CONNECTING -> CONNECTED -> CLOSED
              |                          ^
              +--> IDLE (timeout/error)  |  (disconnect or server close)

Each connect attempt gets a fresh transport, a fresh Bus and a fresh
SessionContext. The supervisor listens on that Bus exactly once and detaches
on teardown, so callbacks from a dead connection never reach a new one.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from loguru import logger

from ircagent.agent import AgentSink, NotifyLevel, StatusUI
from ircagent.bus import Bus
from ircagent.config import (
    CONNECT_TIMEOUT,
    DEFAULT_PORT,
    MAX_NICK_LENGTH,
    MEMBERSHIP_QUIET_SECONDS,
    MESSAGE_QUIET_SECONDS,
    ResolvedProfile,
)
from ircagent.debounce import Burst, EventDebouncer
from ircagent.errors import (
    AlreadyConnectedError,
    ConnectTimeoutError,
    NicknameTooLongError,
    NotConnectedError,
    TransportError,
)
from ircagent.events import (
    ChatMessage,
    Closed,
    JoinRejected,
    Membership,
    NickChange,
    Registered,
    ServerNotice,
    TransportFailure,
)
from ircagent.routing import (
    DeliveryMode,
    RoutingDecision,
    render_membership,
    route_chat,
    route_membership,
    route_notice,
)
from ircagent.session import ConnectionState, SessionContext, normalize_channel, save_snapshot
from ircagent.transport import IRCClient

TransportFactory = Callable[..., Any]

_HANDLED = (
    ChatMessage,
    Membership,
    JoinRejected,
    NickChange,
    Registered,
    ServerNotice,
    Closed,
    TransportFailure,
)


@dataclass(frozen=True)
class ConnectParams:
    """Everything needed to open a connection."""

    host: str
    nick: str
    port: int = DEFAULT_PORT
    channels: tuple[str, ...] = field(default_factory=tuple)
    tls: bool = False
    username: str | None = None
    realname: str | None = None
    sasl_password: str | None = None
    profile_name: str | None = None

    @classmethod
    def from_profile(cls, resolved: ResolvedProfile) -> ConnectParams:
        profile, server = resolved.profile, resolved.server
        return cls(
            host=server.host,
            port=server.port,
            nick=profile.nick,
            channels=profile.channels,
            tls=server.ssl,
            username=profile.username or profile.nick,
            realname=profile.realname or profile.nick,
            sasl_password=profile.nickserv_pass,
            profile_name=resolved.name,
        )


@dataclass(frozen=True)
class SessionSummary:
    host: str
    port: int
    nick: str
    channels: tuple[str, ...]
    connected: bool
    profile_name: str | None = None

    @classmethod
    def of(cls, ctx: SessionContext) -> SessionSummary:
        return cls(
            host=ctx.host,
            port=ctx.port,
            nick=ctx.nick,
            channels=tuple(ctx.channels),
            connected=ctx.connected,
            profile_name=ctx.profile_name,
        )

    def to_details(self) -> dict[str, Any]:
        return {
            "host": self.host,
            "port": self.port,
            "nick": self.nick,
            "channels": list(self.channels),
            "connected": self.connected,
        }


def validate_nickname(nick: str, max_length: int = MAX_NICK_LENGTH) -> None:
    """Raise NicknameTooLongError with a truncated suggestion if nick is too long."""
    if len(nick) > max_length:
        raise NicknameTooLongError(nick, nick[:max_length], max_length)


class ConnectionSupervisor:
    """Owns the transport, the SessionContext and both debouncers."""

    def __init__(
        self,
        agent: AgentSink,
        ui: StatusUI | None = None,
        *,
        transport_factory: TransportFactory = IRCClient,
        connect_timeout: float = CONNECT_TIMEOUT,
        message_quiet_seconds: float = MESSAGE_QUIET_SECONDS,
        membership_quiet_seconds: float = MEMBERSHIP_QUIET_SECONDS,
        snapshot_path: str | Path | None = None,
    ) -> None:
        self._agent = agent
        self._ui = ui
        self._transport_factory = transport_factory
        self._connect_timeout = connect_timeout
        self._snapshot_path = Path(snapshot_path) if snapshot_path else None

        self._state = ConnectionState.IDLE
        self._session: SessionContext | None = None
        self._client: Any = None
        self._bus: Bus | None = None
        self._connect_task: asyncio.Task | None = None
        self._registered: asyncio.Future | None = None
        self._tasks: set[asyncio.Task] = set()

        # Extra system-prompt text tied to the current session
        self.prompt_addendum: str | None = None

        self._messages = EventDebouncer(
            message_quiet_seconds, self._flush_chat, separator="\n", name="irc-messages"
        )
        self._membership = EventDebouncer(
            membership_quiet_seconds, self._flush_membership, separator="\n", name="irc-membership"
        )

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def session(self) -> SessionContext | None:
        return self._session

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED and self._client is not None

    def summary(self) -> SessionSummary:
        self.require_connected()
        assert self._session is not None
        return SessionSummary.of(self._session)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self, params: ConnectParams | ResolvedProfile) -> SessionSummary:
        """Open a connection and wait for registration.

        Raises AlreadyConnectedError, NicknameTooLongError (before any I/O),
        ConnectTimeoutError or TransportError. On the last two, and when the
        caller cancels, all partial state is rolled back first.
        """
        if isinstance(params, ResolvedProfile):
            params = ConnectParams.from_profile(params)

        if self._state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
            nick = self._session.nick if self._session else params.nick
            raise AlreadyConnectedError(
                f"Already connected as {nick}", details={"nick": nick}
            )
        validate_nickname(params.nick)

        channels = [normalize_channel(c) for c in params.channels]
        self._session = SessionContext(
            host=params.host,
            port=params.port,
            nick=params.nick,
            channels=[],
            profile_name=params.profile_name,
        )
        for channel in channels:
            self._session.add_channel(channel)
        self._state = ConnectionState.CONNECTING

        loop = asyncio.get_running_loop()
        self._registered = loop.create_future()
        self._bus = Bus()
        self._client = self._transport_factory(
            bus=self._bus, nick=params.nick, **self._client_kwargs(params)
        )
        self._bus.register(self)

        logger.info("IRC connecting to {}:{} as {}", params.host, params.port, params.nick)
        self._connect_task = asyncio.create_task(
            self._client.connect(hostname=params.host, port=params.port, tls=params.tls)
        )
        self._connect_task.add_done_callback(self._on_connect_task_done)

        try:
            await asyncio.wait_for(self._registered, timeout=self._connect_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "IRC connect to {}:{} timed out after {}s",
                params.host,
                params.port,
                self._connect_timeout,
            )
            await self._rollback()
            raise ConnectTimeoutError(
                f"Connection timeout ({self._connect_timeout:g}s)",
                details={"host": params.host, "port": params.port},
            ) from None
        except TransportError as exc:
            logger.warning("IRC connect to {}:{} failed: {}", params.host, params.port, exc)
            await self._rollback()
            raise
        except asyncio.CancelledError:
            logger.info("IRC connect to {}:{} cancelled", params.host, params.port)
            await self._rollback()
            raise
        finally:
            self._registered = None

        assert self._session is not None
        return SessionSummary.of(self._session)

    def _client_kwargs(self, params: ConnectParams) -> dict[str, Any]:
        kwargs: dict[str, Any] = {}
        if params.username:
            kwargs["username"] = params.username
        if params.realname:
            kwargs["realname"] = params.realname
        if params.sasl_password:
            kwargs["sasl_username"] = params.nick
            kwargs["sasl_password"] = params.sasl_password
        return kwargs

    def _on_connect_task_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._fail_registration(TransportError(f"Connection failed: {exc}", original_error=exc))
            if self._state is ConnectionState.CONNECTED:
                logger.warning("IRC transport task ended with error: {}", exc)

    def _fail_registration(self, error: TransportError) -> None:
        if self._registered is not None and not self._registered.done():
            self._registered.set_exception(error)

    async def _rollback(self) -> None:
        """Undo a failed connect: back to IDLE as if never attempted."""
        await self._release_transport(quit_message=None)
        self._session = None
        self.prompt_addendum = None
        self._state = ConnectionState.IDLE
        self._persist()

    async def disconnect(self, reason: str = "Disconnecting") -> None:
        """Quit and drop the session. Raises NotConnectedError unless CONNECTED."""
        self.require_connected()
        await self._release_transport(quit_message=reason)
        self._session = None
        self.prompt_addendum = None
        self._state = ConnectionState.CLOSED
        self._set_status("")
        self._persist()
        logger.info("IRC disconnected ({})", reason)

    async def _release_transport(self, quit_message: str | None) -> None:
        """Detach listeners, drop buffered bursts and close the transport."""
        bus, client, task = self._bus, self._client, self._connect_task
        self._bus = None
        self._client = None
        self._connect_task = None
        if bus is not None:
            bus.close()
        self._messages.cancel_all()
        self._membership.cancel_all()
        if client is not None:
            try:
                if quit_message is not None:
                    await client.quit(quit_message)
                else:
                    await client.disconnect(expected=True)
            except Exception as exc:
                logger.warning("IRC transport teardown failed: {}", exc)
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as exc:
                logger.debug("IRC connect task ended with {}", exc)

    # ------------------------------------------------------------------
    # Session operations
    # ------------------------------------------------------------------

    def require_connected(self) -> None:
        """Raise NotConnectedError unless a registered connection is live."""
        if not self.is_connected or self._session is None:
            raise NotConnectedError()

    async def send(self, target: str, message: str) -> None:
        self.require_connected()
        try:
            await self._client.message(target, message)
        except Exception as exc:
            raise TransportError(f"Send failed: {exc}", original_error=exc) from exc
        logger.debug("IRC sent to {}: {}", target, message[:80])

    async def change_nick(self, new_nick: str) -> str:
        """Request a nick change. Returns the old nick; the session updates on confirmation."""
        self.require_connected()
        assert self._session is not None
        old_nick = self._session.nick
        try:
            await self._client.set_nickname(new_nick)
        except Exception as exc:
            raise TransportError(f"Nick change failed: {exc}", original_error=exc) from exc
        return old_nick

    async def join(self, channel: str) -> str:
        """Join a channel; the channel set is updated before the server answers."""
        self.require_connected()
        assert self._session is not None
        channel = normalize_channel(channel)
        added = self._session.add_channel(channel)
        self._persist()
        try:
            await self._client.join(channel)
        except Exception as exc:
            if added:
                self._session.remove_channel(channel)
                self._persist()
            raise TransportError(f"Join failed: {exc}", original_error=exc) from exc
        return channel

    async def leave(self, channel: str) -> str:
        self.require_connected()
        assert self._session is not None
        channel = normalize_channel(channel)
        self._session.remove_channel(channel)
        self._persist()
        try:
            await self._client.part(channel)
        except Exception as exc:
            raise TransportError(f"Part failed: {exc}", original_error=exc) from exc
        self._notify(f"Left {channel}")
        return channel

    # ------------------------------------------------------------------
    # Bus listener
    # ------------------------------------------------------------------

    def accept_event(self, source: str, evt: object) -> bool:
        return isinstance(evt, _HANDLED)

    def push_event(self, source: str, evt: object) -> None:
        if isinstance(evt, Registered):
            self._on_registered(evt)
        elif isinstance(evt, ChatMessage):
            self._on_chat(evt)
        elif isinstance(evt, Membership):
            self._on_membership(evt)
        elif isinstance(evt, JoinRejected):
            self._on_join_rejected(evt)
        elif isinstance(evt, NickChange):
            self._on_nick_change(evt)
        elif isinstance(evt, ServerNotice):
            decision = route_notice(evt)
            if decision is not None:
                self._deliver(decision)
        elif isinstance(evt, Closed):
            self._on_closed(evt)
        elif isinstance(evt, TransportFailure):
            self._on_transport_failure(evt)

    def _on_registered(self, evt: Registered) -> None:
        if self._session is None or self._state is not ConnectionState.CONNECTING:
            return
        self._session.connected = True
        self._state = ConnectionState.CONNECTED
        logger.info("IRC connected to {} as {}", self._session.host, self._session.nick)
        self._notify(f"IRC connected as {self._session.nick}")
        self._update_status()
        self._persist()
        self._spawn(self._join_channels(self._client, list(self._session.channels)))
        if self._registered is not None and not self._registered.done():
            self._registered.set_result(evt)

    async def _join_channels(self, client: Any, channels: list[str]) -> None:
        """One JOIN per channel, in session order."""
        for channel in channels:
            if client is not self._client:
                return
            await client.join(channel)

    def _on_chat(self, evt: ChatMessage) -> None:
        if self._session is None:
            return
        # DM or channel is fixed on arrival; the nick may change before the flush
        is_dm = evt.target == self._session.nick
        self._messages.record((evt.target, evt.nick, is_dm), evt.text)

    def _on_membership(self, evt: Membership) -> None:
        if self._session is None:
            return
        if evt.nick == self._session.nick:
            if evt.kind == "join":
                self._notify(f"Joined {evt.channel}")
            return
        self._membership.record(evt.channel, render_membership(evt.channel, evt.nick, evt.kind))

    def _on_join_rejected(self, evt: JoinRejected) -> None:
        # Undo the optimistic add made by join()
        if self._session is None or not self._session.remove_channel(evt.channel):
            return
        logger.warning("IRC join to {} rejected: {}", evt.channel, evt.reason)
        self._notify(f"Could not join {evt.channel}: {evt.reason}", "warning")
        self._persist()

    def _on_nick_change(self, evt: NickChange) -> None:
        # Applies only if the confirmation names the nick we currently track
        if self._session is None or evt.old != self._session.nick:
            return
        self._session.nick = evt.new
        logger.info("IRC nick changed {} -> {}", evt.old, evt.new)
        self._notify(f"Nick changed to {evt.new}")
        self._update_status()
        self._persist()

    def _on_closed(self, evt: Closed) -> None:
        self._fail_registration(TransportError("Connection closed before registration"))
        if self._state is not ConnectionState.CONNECTED:
            return
        assert self._session is not None
        self._session.connected = False
        self._state = ConnectionState.CLOSED
        logger.warning("IRC connection to {} closed", self._session.host)
        self._notify("IRC connection closed", "warning")
        self._set_status("")
        self._persist()
        self._spawn(self._release_transport(quit_message=None))

    def _on_transport_failure(self, evt: TransportFailure) -> None:
        self._notify(f"IRC error: {evt.message}", "error")
        self._fail_registration(TransportError(f"Connection failed: {evt.message}"))

    # ------------------------------------------------------------------
    # Flush consumers
    # ------------------------------------------------------------------

    def _flush_chat(self, burst: Burst) -> None:
        if self._session is None:
            return
        target, nick, is_dm = burst.key
        self._deliver(route_chat(target, nick, burst.text, self._session.nick, is_dm=is_dm))

    def _flush_membership(self, burst: Burst) -> None:
        self._deliver(route_membership(str(burst.key), burst.payloads))

    def _deliver(self, decision: RoutingDecision) -> None:
        if decision.mode is DeliveryMode.STEER:
            self._agent.deliver_steer(decision.content)
        else:
            self._agent.deliver_context(
                decision.content,
                trigger_turn=decision.trigger_turn,
                tag=decision.tag,
                metadata=decision.metadata,
            )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.opt(exception=task.exception()).error("IRC background task failed")

    def _notify(self, message: str, level: NotifyLevel = "info") -> None:
        if self._ui is not None:
            self._ui.notify(message, level)

    def _set_status(self, text: str) -> None:
        if self._ui is not None:
            self._ui.set_status("irc", text)

    def _update_status(self) -> None:
        if self._session is not None and self._session.connected:
            self._set_status(f"irc: {self._session.nick}")
        else:
            self._set_status("")

    def _persist(self) -> None:
        if self._snapshot_path is None:
            return
        try:
            save_snapshot(self._session, self._snapshot_path)
        except OSError as exc:
            logger.warning("Could not write session snapshot {}: {}", self._snapshot_path, exc)
