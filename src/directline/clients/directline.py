"""
Direct Line v3 HTTP client.

This module provides the concrete DirectLineTransport that talks to the Bot
Framework Direct Line REST API. The inbound activity stream is implemented by
polling the activities endpoint and following the watermark.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from ..core.models import (
    Activity,
    ActivityGroup,
    Auth,
    Conversation,
    ErrorResponse,
    ResourceResponse,
)
from .base import BadStatusError, ClientError, DirectLineTransport, TransportError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://directline.botframework.com/v3/directline"

ModelT = TypeVar("ModelT", bound=BaseModel)


class DirectLineClient(DirectLineTransport):
    """
    Direct Line transport over HTTPS.

    Conversations are started with the configured secret or token; activities
    are posted and polled with the conversation token.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        poll_interval: float = 1.0,
        max_connections: int = 10,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")

        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.poll_interval = poll_interval

        self._http_client = http_client or httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Content-Type": "application/json"},
            timeout=httpx.Timeout(timeout),
            limits=httpx.Limits(
                max_connections=max_connections,
                max_keepalive_connections=max(1, max_connections // 2),
            ),
        )

        logger.info(f"Initialized Direct Line client for {self.base_url}")

    async def start_conversation(self, auth: Auth) -> Conversation:
        response = await self._send(
            self._http_client.post,
            "/conversations",
            auth.authorization_header,
        )
        conversation = self._parse(response, Conversation)
        logger.info(f"Started conversation {conversation.conversation_id}")
        return conversation

    async def restart_conversation(
        self, auth: Auth, conversation_id: str
    ) -> Conversation:
        response = await self._send(
            self._http_client.get,
            f"/conversations/{conversation_id}",
            auth.authorization_header,
        )
        conversation = self._parse(response, Conversation)
        logger.info(f"Refreshed token for conversation {conversation.conversation_id}")
        return conversation

    async def post_activity(
        self, token: str, conversation_id: str, activity: Activity
    ) -> ResourceResponse:
        response = await self._send(
            self._http_client.post,
            f"/conversations/{conversation_id}/activities",
            f"Bearer {token}",
            json=activity.to_wire(),
        )
        return self._parse(response, ResourceResponse)

    async def get_activities(
        self, token: str, conversation_id: str, watermark: str | None = None
    ) -> ActivityGroup:
        """
        Fetch the activities received after a watermark.

        Args:
            token: Conversation token
            conversation_id: Conversation to read
            watermark: Watermark of the previous fetch, None for all activities

        Returns:
            The activity group with the new watermark
        """
        response = await self._send(
            self._http_client.get,
            f"/conversations/{conversation_id}/activities",
            f"Bearer {token}",
            params={"watermark": watermark} if watermark else None,
        )
        return self._parse(response, ActivityGroup)

    async def open_activity_stream(
        self, token: str, conversation_id: str
    ) -> AsyncIterator[ActivityGroup]:
        watermark: str | None = None
        logger.debug(f"Polling activities of {conversation_id} every {self.poll_interval}s")

        while True:
            group = await self.get_activities(token, conversation_id, watermark)
            if group.watermark is not None:
                watermark = group.watermark
            if group.activities:
                yield group
            await asyncio.sleep(self.poll_interval)

    async def _send(
        self, method: Any, url: str, authorization: str, **kwargs: Any
    ) -> httpx.Response:
        """Issue a request and turn failures into ClientError subclasses."""
        try:
            response = await method(
                url, headers={"Authorization": authorization}, **kwargs
            )
        except httpx.HTTPError as e:
            logger.error(f"Direct Line request to {url} failed: {e}")
            raise TransportError(
                f"Request to {url} failed: {e}",
                details={"error_type": type(e).__name__},
            ) from e

        if not 200 <= response.status_code < 300:
            self._handle_http_error(response)

        return response

    def _handle_http_error(self, response: httpx.Response) -> None:
        """Raise BadStatusError with the parsed error envelope, if any."""
        try:
            error_response = ErrorResponse.model_validate(response.json())
        except ValueError:
            error_response = None

        error = BadStatusError(
            response.status_code,
            error_response,
            details={"body": response.text[:200]} if error_response is None else None,
        )
        logger.warning(f"Direct Line returned {error.message}")
        raise error

    def _parse(self, response: httpx.Response, model: type[ModelT]) -> ModelT:
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise ClientError(
                f"Invalid {model.__name__} in response: {e}",
                details={"status_code": response.status_code},
            ) from e

    async def close(self) -> None:
        await self._http_client.aclose()

    def __repr__(self) -> str:
        return f"DirectLineClient(base_url='{self.base_url}')"
