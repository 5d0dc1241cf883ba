"""
Bot connection module.

This module provides the BotConnection facade and the shared activity feed.
"""

from .activity_stream import ActivityStream, ActivitySubscription
from .bot_connection import TOKEN_REFRESH_RETRIES, BotConnection

__all__ = [
    "BotConnection",
    "ActivityStream",
    "ActivitySubscription",
    "TOKEN_REFRESH_RETRIES",
]
