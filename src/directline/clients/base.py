"""
Abstract transport interface for the Direct Line service.

This module defines the operations the connection core consumes from a
transport, along with the transport-level exceptions those operations raise.
Concrete transports translate them to HTTP (see directline.py); tests provide
in-memory fakes.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any

from ..core.models import (
    Activity,
    ActivityGroup,
    Auth,
    Conversation,
    ErrorResponse,
    ResourceResponse,
)

logger = logging.getLogger(__name__)


class ClientError(Exception):
    """Base exception for transport errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        return f"directline: {self.message}"


class BadStatusError(ClientError):
    """The service answered with a non-success HTTP status."""

    def __init__(
        self,
        status_code: int,
        error_response: ErrorResponse | None = None,
        **kwargs: Any,
    ) -> None:
        message = f"HTTP {status_code}"
        if error_response is not None:
            message += f" {error_response.error.code}"
            if error_response.error.message:
                message += f": {error_response.error.message}"
        super().__init__(message, **kwargs)
        self.status_code = status_code
        self.error_response = error_response


class TransportError(ClientError):
    """The request never produced an HTTP response (timeout, network failure)."""

    pass


class DirectLineTransport(ABC):
    """
    Operations the connection core needs from the Direct Line service.

    Implementations raise ClientError subclasses; BadStatusError must carry
    the parsed error envelope when the service returned one.
    """

    @abstractmethod
    async def start_conversation(self, auth: Auth) -> Conversation:
        """
        Start a new conversation.

        Args:
            auth: Secret or token authorizing the request

        Returns:
            The new conversation with its token
        """
        pass

    @abstractmethod
    async def restart_conversation(
        self, auth: Auth, conversation_id: str
    ) -> Conversation:
        """
        Resume an existing conversation with a fresh token.

        Args:
            auth: Secret or token authorizing the request
            conversation_id: Conversation to resume

        Returns:
            The conversation with the same id and a new token
        """
        pass

    @abstractmethod
    async def post_activity(
        self, token: str, conversation_id: str, activity: Activity
    ) -> ResourceResponse:
        """Send an activity to the bot."""
        pass

    @abstractmethod
    def open_activity_stream(
        self, token: str, conversation_id: str
    ) -> AsyncIterator[ActivityGroup]:
        """
        Open the inbound activity stream of a conversation.

        Returns:
            Async iterator of activity groups in delivery order. Closing it
            releases the underlying subscription.
        """
        pass

    async def close(self) -> None:
        """Release transport resources."""
        pass

    async def __aenter__(self) -> "DirectLineTransport":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"
