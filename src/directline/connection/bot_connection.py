"""
BotConnection: the public entry point of the package.

A BotConnection owns one conversation with a bot. It exposes the connection
state stream, a shared inbound activity feed and activity posting with a
single token-refresh retry.
"""

import logging
import weakref
from collections.abc import AsyncIterator

from ..clients.base import DirectLineTransport
from ..core.errors import TokenExpiredError, classify_error
from ..core.models import Activity, ActivityGroup, Auth, ResourceResponse
from ..orchestration.orchestrator import ConversationOrchestrator
from ..orchestration.state import StateSubscription
from ..orchestration.types import ConnectionState
from .activity_stream import ActivityStream

logger = logging.getLogger(__name__)

# Token-expired posts are retried this many times after a token refresh
TOKEN_REFRESH_RETRIES = 1


class BotConnection:
    """
    Connection to a bot over Direct Line.

    Example:
        >>> async with BotConnection(DirectLineClient(), Auth.secret("...")) as bot:
        ...     async with bot.activities.subscribe() as activities:
        ...         await bot.post_activity(Activity.message(text="hi"))
        ...         async for activity in activities:
        ...             print(activity.text)
    """

    def __init__(self, transport: DirectLineTransport, auth: Auth):
        self.transport = transport
        self.auth = auth
        self._orchestrator = ConversationOrchestrator(transport, auth)
        self._activities: ActivityStream | None = None
        self._streams: weakref.WeakSet[ActivityStream] = weakref.WeakSet()

    @property
    def state(self) -> StateSubscription:
        """Stream of connection states, starting with the current one."""
        return self._orchestrator.register.subscribe()

    @property
    def current_state(self) -> ConnectionState:
        return self._orchestrator.state

    @property
    def activities(self) -> ActivityStream:
        """Shared activity feed, created on first access."""
        if self._activities is None:
            self._activities = self.get_activity_stream()
        return self._activities

    def get_activity_stream(self) -> ActivityStream:
        """Create an independent activity feed with its own upstream subscription."""
        stream = ActivityStream(self._activity_groups)
        self._streams.add(stream)
        return stream

    def reset_state(self) -> None:
        """Force a token refresh before the next conversation use."""
        self._orchestrator.reset_state()

    async def post_activity(self, activity: Activity) -> ResourceResponse:
        """
        Send an activity to the bot.

        Starts the conversation if necessary. A post rejected because the token
        expired is retried once after refreshing the token.

        Args:
            activity: Activity to send

        Returns:
            Identifier assigned to the activity by the service

        Raises:
            BotConnectionError: Classified failure of the conversation or post
        """
        attempt = 0
        while True:
            conversation = await self._orchestrator.conversation()
            try:
                return await self.transport.post_activity(
                    conversation.token, conversation.conversation_id, activity
                )
            except Exception as e:
                error = classify_error(e)
                if isinstance(error, TokenExpiredError):
                    self._orchestrator.mark_token_expired(conversation)
                    if attempt < TOKEN_REFRESH_RETRIES:
                        attempt += 1
                        continue
                    logger.warning("Token still expired after refresh, giving up")
                else:
                    logger.warning(f"Posting activity failed: {error!r}")

                if error is e:
                    raise
                raise error from e

    async def _activity_groups(self) -> AsyncIterator[ActivityGroup]:
        conversation = await self._orchestrator.conversation()
        groups = self.transport.open_activity_stream(
            conversation.token, conversation.conversation_id
        )
        try:
            async for group in groups:
                yield group
        finally:
            aclose = getattr(groups, "aclose", None)
            if aclose is not None:
                await aclose()

    async def close(self) -> None:
        """Stop every activity feed, end state subscriptions and close the transport."""
        for stream in list(self._streams):
            await stream.close()
        self._orchestrator.register.close()
        await self.transport.close()

    async def __aenter__(self) -> "BotConnection":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
