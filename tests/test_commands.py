"""Tests for the action surface (ircagent/commands.py)."""

from __future__ import annotations

import json

import pytest

from ircagent.commands import complete_action, dispatch, parse_command
from ircagent.config import ProfileResolver
from ircagent.errors import UnknownActionError, UsageError
from ircagent.supervisor import ConnectionSupervisor
from tests.mocks import FakeTransportFactory, RecordingAgent, settle

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_supervisor(outcome="register") -> tuple[ConnectionSupervisor, FakeTransportFactory]:
    factory = FakeTransportFactory(outcome)
    sup = ConnectionSupervisor(RecordingAgent(), transport_factory=factory, connect_timeout=0.05)
    return sup, factory


async def _connected():
    sup, factory = _make_supervisor()
    result = await dispatch(
        sup, "connect", {"host": "irc.example.org", "nickname": "bot", "channels": ["a"]}
    )
    assert not result.is_error
    await settle()
    return sup, factory


# ---------------------------------------------------------------------------
# dispatch
# ---------------------------------------------------------------------------


class TestConnectAction:
    @pytest.mark.asyncio
    async def test_connect(self):
        sup, factory = _make_supervisor()
        result = await dispatch(
            sup, "connect", {"host": "irc.example.org", "nickname": "bot", "channels": ["a", "#b"]}
        )
        assert result.text == "Connected to irc.example.org:6667 as bot\nJoining channels: #a, #b"
        assert result.details == {
            "host": "irc.example.org",
            "port": 6667,
            "nick": "bot",
            "channels": ["#a", "#b"],
            "connected": True,
        }

    @pytest.mark.asyncio
    async def test_missing_params(self):
        sup, factory = _make_supervisor()
        result = await dispatch(sup, "connect", {"host": "irc.example.org"})
        assert result.details["error"] == "missing_connect_params"
        assert factory.created == []

    @pytest.mark.asyncio
    async def test_nickname_too_long(self):
        sup, factory = _make_supervisor()
        result = await dispatch(sup, "connect", {"host": "h", "nickname": "verylongnick"})
        assert result.text.startswith("Error: ")
        assert result.details == {
            "error": "nickname_too_long",
            "nickname": "verylongnick",
            "suggested": "verylong",
        }
        assert factory.created == []

    @pytest.mark.asyncio
    async def test_already_connected(self):
        sup, factory = await _connected()
        result = await dispatch(sup, "connect", {"host": "h", "nickname": "bot"})
        assert result.details["error"] == "already_connected"
        assert len(factory.created) == 1

    @pytest.mark.asyncio
    async def test_timeout_is_reported(self):
        sup, _ = _make_supervisor(outcome="hang")
        result = await dispatch(sup, "connect", {"host": "h", "nickname": "bot"})
        assert result.details["error"] == "connect_timeout"
        assert sup.session is None

    @pytest.mark.asyncio
    async def test_connect_with_profile(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(
            json.dumps(
                {
                    "servers": {"local": {"host": "localhost", "port": 6668}},
                    "profiles": {"dev": {"server": "local", "nick": "dev", "channels": ["#x"]}},
                }
            )
        )
        sup, factory = _make_supervisor()
        result = await dispatch(sup, "connect", {"profile": "dev"}, ProfileResolver(path))
        assert result.details["port"] == 6668
        assert sup.session.profile_name == "dev"

    @pytest.mark.asyncio
    async def test_connect_with_unknown_profile(self, tmp_path):
        sup, _ = _make_supervisor()
        result = await dispatch(
            sup, "connect", {"profile": "ghost"}, ProfileResolver(tmp_path / "none.json")
        )
        assert result.details["error"] == "profile_not_found"


class TestSessionActions:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("action", ["info", "send", "change_nick", "list_channels", "join", "leave", "disconnect"])
    async def test_requires_connection(self, action):
        sup, _ = _make_supervisor()
        result = await dispatch(sup, action, {"target": "#a", "message": "m", "channel": "#a"})
        assert result.details["error"] == "not_connected"
        assert result.text == "Error: Not connected to IRC"

    @pytest.mark.asyncio
    async def test_info(self):
        sup, _ = await _connected()
        result = await dispatch(sup, "info")
        assert result.text == (
            "You are connected to IRC as: bot\nServer: irc.example.org:6667\nYour channels: #a"
        )

    @pytest.mark.asyncio
    async def test_list_channels_none(self):
        sup, _ = await _connected()
        await dispatch(sup, "leave", {"channel": "a"})
        result = await dispatch(sup, "list_channels")
        assert result.text.endswith("Channels: none")
        assert result.details["channels"] == []

    @pytest.mark.asyncio
    async def test_send(self):
        sup, factory = await _connected()
        result = await dispatch(sup, "send", {"target": "#a", "message": "hello"})
        assert result.text == "Sent to #a: hello"
        factory.last.message.assert_awaited_once_with("#a", "hello")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("params", "kind"),
        [({"message": "m"}, "missing_target"), ({"target": "#a"}, "missing_message")],
    )
    async def test_send_missing_params(self, params, kind):
        sup, factory = await _connected()
        result = await dispatch(sup, "send", params)
        assert result.details["error"] == kind
        factory.last.message.assert_not_called()

    @pytest.mark.asyncio
    async def test_change_nick(self):
        sup, _ = await _connected()
        result = await dispatch(sup, "change_nick", {"new_nick": "bot2"})
        assert result.text == "Requesting nickname change from bot to bot2"
        missing = await dispatch(sup, "change_nick", {})
        assert missing.details["error"] == "missing_new_nick"

    @pytest.mark.asyncio
    async def test_join_and_leave(self):
        sup, _ = await _connected()
        joined = await dispatch(sup, "join", {"channel": "b"})
        assert joined.text == "Requested join to #b"
        left = await dispatch(sup, "leave", {"channel": "#a"})
        assert left.text == "Left channel #a"
        assert sup.session.channels == ["#b"]
        missing = await dispatch(sup, "join", {})
        assert missing.details["error"] == "missing_channel"

    @pytest.mark.asyncio
    async def test_disconnect(self):
        sup, _ = await _connected()
        result = await dispatch(sup, "disconnect")
        assert result.text == "Disconnected from IRC"
        assert not result.is_error

    @pytest.mark.asyncio
    async def test_unknown_action(self):
        sup, _ = _make_supervisor()
        result = await dispatch(sup, "dance")
        assert result.details == {"error": "unknown_action", "action": "dance"}
        assert "Supported: info, send" in result.text


# ---------------------------------------------------------------------------
# parse_command / complete_action
# ---------------------------------------------------------------------------


class TestParseCommand:
    def test_empty_means_status(self):
        assert parse_command("   ") is None

    def test_send_joins_message_words(self):
        assert parse_command("send #a hello there world") == (
            "send",
            {"target": "#a", "message": "hello there world"},
        )

    def test_connect_with_channels(self):
        assert parse_command("connect irc.example.org bot #a #b") == (
            "connect",
            {"host": "irc.example.org", "nickname": "bot", "channels": ["#a", "#b"]},
        )

    def test_simple_actions(self):
        assert parse_command("info") == ("info", {})
        assert parse_command("join #a") == ("join", {"channel": "#a"})
        assert parse_command("change_nick bot2") == ("change_nick", {"new_nick": "bot2"})

    @pytest.mark.parametrize("text", ["send #a", "join", "leave", "change_nick", "connect host"])
    def test_usage_errors(self, text):
        with pytest.raises(UsageError) as exc_info:
            parse_command(text)
        assert str(exc_info.value).startswith("Usage: irc ")

    def test_unknown_action(self):
        with pytest.raises(UnknownActionError):
            parse_command("dance now")


class TestCompleteAction:
    def test_prefix(self):
        values = [v for v, _ in complete_action("l")]
        assert values == ["leave", "list_channels"]

    def test_case_insensitive(self):
        assert complete_action("DIS")[0][0] == "disconnect"

    def test_no_match(self):
        assert complete_action("zzz") is None
