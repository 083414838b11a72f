"""Domain exceptions. Each carries the error kind string reported to callers."""

from __future__ import annotations


class IRCAgentError(Exception):
    """Base for IRC agent errors."""

    code = "error"

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, object] | None = None,
        original_error: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.details = details or {}
        self.original_error = original_error


class AlreadyConnectedError(IRCAgentError):
    code = "already_connected"


class NotConnectedError(IRCAgentError):
    code = "not_connected"

    def __init__(self, message: str = "Not connected to IRC", **kwargs) -> None:
        super().__init__(message, **kwargs)


class NicknameTooLongError(IRCAgentError):
    """Nickname exceeds the server limit; carries a truncated suggestion."""

    code = "nickname_too_long"

    def __init__(self, nickname: str, suggested: str, max_length: int) -> None:
        super().__init__(
            f'Nickname "{nickname}" is too long (max {max_length} chars). '
            f'Suggested: "{suggested}"',
            details={"nickname": nickname, "suggested": suggested},
        )
        self.nickname = nickname
        self.suggested = suggested


class MissingParameterError(IRCAgentError):
    """Required action parameter absent. Code is ``missing_<param>``."""

    def __init__(self, param: str, message: str) -> None:
        super().__init__(message, details={"param": param})
        self.param = param
        self.code = f"missing_{param}"


class ProfileNotFoundError(IRCAgentError):
    code = "profile_not_found"


class UnknownServerReferenceError(IRCAgentError):
    code = "unknown_server"


class ConnectTimeoutError(IRCAgentError):
    code = "connect_timeout"


class TransportError(IRCAgentError):
    code = "transport_error"


class UnknownActionError(IRCAgentError):
    code = "unknown_action"


class UsageError(IRCAgentError):
    """Command text could not be parsed into action parameters."""

    code = "usage"
