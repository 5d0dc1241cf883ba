"""
Client-side connection manager for Bot Framework Direct Line conversations.

The BotConnection class owns a single conversation: it starts it on first
use, refreshes its token when the service reports it expired, serializes
outbound activity posts and shares one inbound activity feed among any
number of consumers.
"""

from .clients import BadStatusError, ClientError, DirectLineClient, DirectLineTransport
from .connection import ActivityStream, ActivitySubscription, BotConnection
from .core.errors import (
    BadArgumentError,
    BotConnectionError,
    ConversationEndedError,
    FailedToConnectError,
    InternalStateError,
    TokenExpiredError,
    classify_error,
)
from .core.models import (
    Activity,
    ActivityGroup,
    Attachment,
    Auth,
    CardAction,
    ChannelAccount,
    Conversation,
    ResourceResponse,
    SuggestedActions,
)
from .orchestration import (
    Connecting,
    ConnectingFailed,
    ConnectionState,
    Failed,
    Ready,
    TokenExpired,
    Uninitialized,
)

__version__ = "0.1.0"

__all__ = [
    "BotConnection",
    "ActivityStream",
    "ActivitySubscription",
    "DirectLineClient",
    "DirectLineTransport",
    "ClientError",
    "BadStatusError",
    "BotConnectionError",
    "FailedToConnectError",
    "TokenExpiredError",
    "BadArgumentError",
    "ConversationEndedError",
    "InternalStateError",
    "classify_error",
    "Activity",
    "ActivityGroup",
    "Attachment",
    "Auth",
    "CardAction",
    "ChannelAccount",
    "Conversation",
    "ResourceResponse",
    "SuggestedActions",
    "ConnectionState",
    "Uninitialized",
    "Connecting",
    "ConnectingFailed",
    "Ready",
    "Failed",
    "TokenExpired",
]
