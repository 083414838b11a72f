"""pydle client that republishes its callbacks as typed events on a Bus."""

from __future__ import annotations

import pydle
from loguru import logger

from ircagent import events
from ircagent.bus import Bus

SOURCE = "irc"


class IRCClient(pydle.Client):
    """Pydle IRC client. Holds no session state; it only translates callbacks."""

    # A closed connection is terminal; the supervisor decides about new ones.
    RECONNECT_ON_ERROR = False

    def __init__(self, bus: Bus, nick: str, **kwargs):
        super().__init__(nick, **kwargs)
        self._bus = bus

    def _publish(self, evt: tuple[str, object]) -> None:
        _, payload = evt
        self._bus.publish(SOURCE, payload)

    async def on_connect(self):
        """Registration finished (welcome + MOTD): report it and the MOTD."""
        await super().on_connect()
        logger.debug("IRC registered as {}", self.nickname)
        self._publish(events.registered(self.nickname))
        motd = getattr(self, "motd", None)
        if motd:
            self._publish(events.motd(motd))

    async def on_message(self, target, by, message):
        await super().on_message(target, by, message)
        # pydle replays our own sends through on_message
        if by == self.nickname:
            return
        self._publish(events.chat_message(target, by, message))

    async def on_join(self, channel, user):
        await super().on_join(channel, user)
        self._publish(events.join(channel, user))

    async def on_part(self, channel, user, message=None):
        await super().on_part(channel, user, message)
        self._publish(events.part(channel, user))

    async def on_nick_change(self, old, new):
        await super().on_nick_change(old, new)
        self._publish(events.nick_change(old, new))

    async def on_raw_332(self, message):
        """RPL_TOPIC, sent when we join a channel that has a topic."""
        await super().on_raw_332(message)
        params = getattr(message, "params", [])
        if len(params) >= 3:
            self._publish(events.topic(params[1], params[2]))

    async def on_topic_change(self, channel, message, by):
        await super().on_topic_change(channel, message, by)
        self._publish(events.topic(channel, message))

    async def _on_join_rejected(self, message):
        params = getattr(message, "params", [])
        if len(params) >= 2:
            reason = params[2] if len(params) >= 3 else "join rejected"
            self._publish(events.join_rejected(params[1], reason))

    # ERR_NOSUCHCHANNEL, ERR_TOOMANYCHANNELS, ERR_CHANNELISFULL, ERR_INVITEONLYCHAN,
    # ERR_BANNEDFROMCHAN, ERR_BADCHANNELKEY
    on_raw_403 = on_raw_405 = on_raw_471 = on_raw_473 = on_raw_474 = on_raw_475 = _on_join_rejected

    async def on_data_error(self, exception):
        """Socket error; pydle disconnects right after, which publishes Closed."""
        self._publish(events.transport_failure(str(exception) or type(exception).__name__))
        await super().on_data_error(exception)

    async def on_disconnect(self, expected):
        await super().on_disconnect(expected)
        logger.info("IRC disconnected (expected={})", expected)
        self._publish(events.closed(expected))
