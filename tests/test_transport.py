"""Tests for IRCClient callback translation (ircagent/transport.py)."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

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
from ircagent.transport import IRCClient

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_client(nick: str = "bot") -> tuple[IRCClient, MagicMock]:
    bus = MagicMock()
    client = IRCClient(bus=bus, nick=nick)
    client.nickname = nick
    return client, bus


def _published(bus: MagicMock) -> list[object]:
    return [c.args[1] for c in bus.publish.call_args_list]


def _mock_message(params=None):
    msg = MagicMock()
    msg.params = params or []
    return msg


def _super(client: IRCClient, name: str):
    return patch.object(type(client).__mro__[1], name, AsyncMock())


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


class TestOnConnect:
    def test_does_not_reconnect_on_error(self):
        assert IRCClient.RECONNECT_ON_ERROR is False

    @pytest.mark.asyncio
    async def test_publishes_registered_then_motd(self):
        client, bus = _make_client()
        client.motd = "Welcome to the network\n"
        with _super(client, "on_connect"):
            await client.on_connect()
        published = _published(bus)
        assert published[0] == Registered(nick="bot")
        assert published[1] == ServerNotice(kind="motd", text="Welcome to the network\n")

    @pytest.mark.asyncio
    async def test_no_motd_event_without_motd(self):
        client, bus = _make_client()
        client.motd = None
        with _super(client, "on_connect"):
            await client.on_connect()
        assert _published(bus) == [Registered(nick="bot")]


# ---------------------------------------------------------------------------
# Messages and membership
# ---------------------------------------------------------------------------


class TestOnMessage:
    @pytest.mark.asyncio
    async def test_channel_message(self):
        client, bus = _make_client()
        with _super(client, "on_message"):
            await client.on_message("#test", "alice", "hello")
        assert _published(bus) == [ChatMessage(target="#test", nick="alice", text="hello")]

    @pytest.mark.asyncio
    async def test_private_message(self):
        client, bus = _make_client()
        with _super(client, "on_message"):
            await client.on_message("bot", "alice", "psst")
        assert _published(bus) == [ChatMessage(target="bot", nick="alice", text="psst")]

    @pytest.mark.asyncio
    async def test_skips_own_messages(self):
        client, bus = _make_client()
        with _super(client, "on_message"):
            await client.on_message("#test", "bot", "my own line")
        bus.publish.assert_not_called()


class TestMembership:
    @pytest.mark.asyncio
    async def test_join(self):
        client, bus = _make_client()
        with _super(client, "on_join"):
            await client.on_join("#test", "alice")
        assert _published(bus) == [Membership(channel="#test", nick="alice", kind="join")]

    @pytest.mark.asyncio
    async def test_part(self):
        client, bus = _make_client()
        with _super(client, "on_part"):
            await client.on_part("#test", "alice", "bye")
        assert _published(bus) == [Membership(channel="#test", nick="alice", kind="part")]


# ---------------------------------------------------------------------------
# Nick, topic, disconnect
# ---------------------------------------------------------------------------


class TestOtherEvents:
    @pytest.mark.asyncio
    async def test_nick_change(self):
        client, bus = _make_client()
        with _super(client, "on_nick_change"):
            await client.on_nick_change("bot", "bot2")
        assert _published(bus) == [NickChange(old="bot", new="bot2")]

    @pytest.mark.asyncio
    async def test_topic_numeric(self):
        client, bus = _make_client()
        with _super(client, "on_raw_332"):
            await client.on_raw_332(_mock_message(["bot", "#test", "Be nice"]))
        assert _published(bus) == [ServerNotice(kind="topic", text="Be nice", channel="#test")]

    @pytest.mark.asyncio
    async def test_topic_numeric_with_short_params(self):
        client, bus = _make_client()
        with _super(client, "on_raw_332"):
            await client.on_raw_332(_mock_message(["bot"]))
        bus.publish.assert_not_called()

    @pytest.mark.asyncio
    async def test_topic_change(self):
        client, bus = _make_client()
        with _super(client, "on_topic_change"):
            await client.on_topic_change("#test", "New topic", "op")
        assert _published(bus) == [ServerNotice(kind="topic", text="New topic", channel="#test")]

    @pytest.mark.asyncio
    async def test_disconnect(self):
        client, bus = _make_client()
        with _super(client, "on_disconnect"):
            await client.on_disconnect(expected=False)
        assert _published(bus) == [Closed(expected=False)]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("numeric", ["403", "471", "473", "474", "475"])
    async def test_join_rejection_numerics(self, numeric):
        client, bus = _make_client()
        handler = getattr(client, f"on_raw_{numeric}")
        await handler(_mock_message(["bot", "#secret", "Cannot join channel"]))
        assert _published(bus) == [JoinRejected(channel="#secret", reason="Cannot join channel")]

    @pytest.mark.asyncio
    async def test_join_rejection_without_reason(self):
        client, bus = _make_client()
        await client.on_raw_474(_mock_message(["bot", "#secret"]))
        assert _published(bus) == [JoinRejected(channel="#secret", reason="join rejected")]

    @pytest.mark.asyncio
    async def test_data_error_publishes_failure(self):
        client, bus = _make_client()
        with _super(client, "on_data_error"):
            await client.on_data_error(ConnectionResetError("reset by peer"))
        assert _published(bus) == [TransportFailure(message="reset by peer")]
