"""
ConversationOrchestrator for the connection lifecycle.

This module provides the ConversationOrchestrator class, which decides for
every request that needs a live conversation whether to reuse the current
one, start a new one or refresh an expired token. Decisions are serialized so
that at most one start/restart call is in flight per connection; every other
caller waits on the state stream for its outcome.
"""

import asyncio
import logging

from ..clients.base import DirectLineTransport
from ..core.errors import classify_error
from ..core.models import Auth, Conversation
from .state import StateRegister, StateSubscription
from .types import (
    Connecting,
    ConnectingFailed,
    ConnectionState,
    Failed,
    Ready,
    TokenExpired,
)

logger = logging.getLogger(__name__)


class ConversationOrchestrator:
    """
    Owner of the connection state and of every bootstrap decision.

    Only this class (through conversation(), mark_token_expired() and
    reset_state()) writes to its StateRegister.
    """

    def __init__(
        self,
        transport: DirectLineTransport,
        auth: Auth,
        register: StateRegister | None = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            transport: Transport used for start and restart calls
            auth: Credential for starting and resuming the conversation
            register: Optional pre-built state register, mainly for tests.
                      If None, a register in the Uninitialized state is created.
        """
        self.transport = transport
        self.auth = auth
        self.register = register or StateRegister()
        self._decision_lock = asyncio.Lock()

        logger.debug("ConversationOrchestrator initialized")

    @property
    def state(self) -> ConnectionState:
        return self.register.get()

    async def conversation(self) -> Conversation:
        """
        Return the current conversation, starting or refreshing it if needed.

        Returns:
            A conversation in the Ready state

        Raises:
            BotConnectionError: The classified start/restart failure, or
                InternalStateError if the state machine is inconsistent
        """
        while True:
            subscription, bootstrap_from = await self._decide()

            with subscription:
                if bootstrap_from is not None:
                    await self._bootstrap(bootstrap_from)

                async for state in subscription:
                    if state.is_ready_or_failed:
                        return state.conversation_or_raise()
                    if state.needs_connect:
                        # The bootstrap was abandoned or the token was marked
                        # expired meanwhile; decide again on the current state.
                        break

    async def _decide(self) -> tuple[StateSubscription, ConnectionState | None]:
        """
        Atomically read the state and claim the bootstrap if one is needed.

        Returns:
            A subscription opened at the decision point, and the state the
            caller must bootstrap from (None when another caller owns it or
            no bootstrap is needed)
        """
        async with self._decision_lock:
            state = self.register.get()
            bootstrap_from = None
            if state.needs_connect:
                bootstrap_from = state
                self.register.set(Connecting())
            return self.register.subscribe(), bootstrap_from

    async def _bootstrap(self, previous: ConnectionState) -> None:
        """Start or restart the conversation and publish the outcome."""
        try:
            if isinstance(previous, TokenExpired):
                conversation_id = previous.conversation.conversation_id
                logger.info(f"Refreshing token for conversation {conversation_id}")
                conversation = await self.transport.restart_conversation(
                    self.auth, conversation_id
                )
            else:
                logger.info("Starting conversation")
                conversation = await self.transport.start_conversation(self.auth)
        except asyncio.CancelledError:
            logger.warning("Conversation bootstrap cancelled")
            self.register.set(ConnectingFailed())
            raise
        except Exception as e:
            error = classify_error(e)
            logger.error(f"Conversation bootstrap failed: {error!r}")
            self.register.set(Failed(error))
            return

        self.register.set(Ready(conversation))

    def mark_token_expired(self, conversation: Conversation) -> None:
        """
        Require a token refresh before the conversation is used again.

        Ignored when a refresh is already pending or in flight, or when the
        current state already carries a newer token, so concurrent posts that
        fail with the same stale token trigger a single restart.
        """
        state = self.register.get()
        if isinstance(state, Connecting | TokenExpired):
            return
        if isinstance(state, Ready) and state.conversation != conversation:
            return

        logger.info(f"Token expired for conversation {conversation.conversation_id}")
        self.register.set(TokenExpired(conversation))

    def reset_state(self) -> None:
        """Force the next conversation request to refresh the token.

        Only Ready and TokenExpired states are affected; the conversation id
        is kept.
        """
        state = self.register.get()
        if isinstance(state, Ready | TokenExpired):
            self.register.set(TokenExpired(state.conversation))
