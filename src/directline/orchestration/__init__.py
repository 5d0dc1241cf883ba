"""
Connection orchestration module.

This module provides the ConversationOrchestrator together with the state
register and the connection state values it manages.
"""

from .orchestrator import ConversationOrchestrator
from .state import StateRegister, StateSubscription
from .types import (
    Connecting,
    ConnectingFailed,
    ConnectionState,
    Failed,
    Ready,
    TokenExpired,
    Uninitialized,
)

__all__ = [
    "ConversationOrchestrator",
    "StateRegister",
    "StateSubscription",
    "ConnectionState",
    "Uninitialized",
    "Connecting",
    "ConnectingFailed",
    "Ready",
    "Failed",
    "TokenExpired",
]
