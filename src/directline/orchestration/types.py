"""
Connection state values.

This module defines the ConnectionState variants held by the StateRegister.
Exactly one of them is current for a connection at any time; it is the only
externally visible truth about connectivity.
"""

import copy
from dataclasses import dataclass

from ..core.errors import BotConnectionError, InternalStateError
from ..core.models import Conversation


@dataclass(frozen=True)
class ConnectionState:
    """Base class of all connection states."""

    @property
    def needs_connect(self) -> bool:
        """Whether the next conversation request must start or restart one."""
        return isinstance(self, Uninitialized | TokenExpired | ConnectingFailed)

    @property
    def is_ready_or_failed(self) -> bool:
        return isinstance(self, Ready | Failed)

    def conversation_or_raise(self) -> Conversation:
        """
        Extract the conversation carried by this state.

        Returns:
            The conversation of a Ready or TokenExpired state

        Raises:
            BotConnectionError: The error of a Failed state
            InternalStateError: For states that carry neither
        """
        raise InternalStateError(f"Unexpected connection state: {self}")


@dataclass(frozen=True)
class Uninitialized(ConnectionState):
    """No conversation has been requested yet."""


@dataclass(frozen=True)
class Connecting(ConnectionState):
    """A start or restart call is in flight."""


@dataclass(frozen=True)
class ConnectingFailed(ConnectionState):
    """A bootstrap call was abandoned before completing."""


@dataclass(frozen=True)
class Ready(ConnectionState):
    """A conversation is available."""

    conversation: Conversation
    """Current conversation and its valid token"""

    def conversation_or_raise(self) -> Conversation:
        return self.conversation


@dataclass(frozen=True)
class Failed(ConnectionState):
    """Starting or restarting the conversation failed."""

    error: BotConnectionError
    """Classified cause of the failure"""

    def conversation_or_raise(self) -> Conversation:
        raise copy.copy(self.error)


@dataclass(frozen=True)
class TokenExpired(ConnectionState):
    """The conversation token must be refreshed before further use."""

    conversation: Conversation
    """Conversation whose id is kept across the refresh"""

    def conversation_or_raise(self) -> Conversation:
        return self.conversation
