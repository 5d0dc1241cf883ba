"""
Connection-level error kinds and the classifier that produces them.

Every failure that crosses the BotConnection boundary is one of the
BotConnectionError kinds defined here. Transport failures are mapped onto them
by classify_error().
"""

import logging

from ..clients.base import BadStatusError
from .models import ErrorCode

logger = logging.getLogger(__name__)


class BotConnectionError(Exception):
    """Base exception for connection errors.

    Errors compare equal when they are of the same kind and carry the same
    message, so they can be embedded in comparable connection states.
    """

    def __init__(self, message: str | None = None):
        self.message = message
        super().__init__(message or self.default_message)

    default_message = "Bot connection error"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BotConnectionError):
            return NotImplemented
        return type(self) is type(other) and self.message == other.message

    def __hash__(self) -> int:
        return hash((type(self), self.message))

    def __copy__(self) -> "BotConnectionError":
        # Fresh instance without traceback, context or cause
        clone = type(self).__new__(type(self), *self.args)
        clone.__dict__.update(self.__dict__)
        return clone

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


class FailedToConnectError(BotConnectionError):
    """The service could not be reached or reported an unclassified failure."""

    default_message = "Failed to connect"


class TokenExpiredError(BotConnectionError):
    """The conversation token is no longer valid."""

    default_message = "Token expired"

    def __init__(self) -> None:
        super().__init__(None)


class BadArgumentError(BotConnectionError):
    """The service rejected the request as malformed."""

    default_message = "Bad argument"


class ConversationEndedError(BotConnectionError):
    """The conversation was terminated by the service."""

    default_message = "Conversation ended"

    def __init__(self) -> None:
        super().__init__(None)


class InternalStateError(BotConnectionError):
    """The connection reached a state it cannot produce a conversation from."""

    default_message = "Unexpected connection state"


def classify_error(error: BaseException) -> BotConnectionError:
    """
    Map any failure onto a BotConnectionError kind.

    Args:
        error: Exception raised by the transport or by this package

    Returns:
        The error unchanged if it is already a BotConnectionError, otherwise
        the kind derived from the service error envelope, falling back to
        FailedToConnectError without a message.
    """
    if isinstance(error, BotConnectionError):
        return error

    if isinstance(error, BadStatusError) and error.error_response is not None:
        detail = error.error_response.error
        code = detail.known_code
        if code is ErrorCode.TOKEN_EXPIRED:
            return TokenExpiredError()
        if code is ErrorCode.BAD_ARGUMENT:
            return BadArgumentError(detail.message)
        return FailedToConnectError(detail.message)

    logger.debug(f"Unclassified failure {type(error).__name__}: {error}")
    return FailedToConnectError(None)
