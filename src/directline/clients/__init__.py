"""
Transport implementations for the Direct Line service.

This package provides the DirectLineTransport abstraction consumed by the
connection core and its HTTP implementation.
"""

from .base import BadStatusError, ClientError, DirectLineTransport, TransportError
from .directline import DEFAULT_BASE_URL, DirectLineClient

__all__ = [
    "DirectLineTransport",
    "DirectLineClient",
    "ClientError",
    "BadStatusError",
    "TransportError",
    "DEFAULT_BASE_URL",
    "create_client",
]


def create_client(**kwargs) -> DirectLineClient:
    """
    Create a Direct Line client from application settings.

    Args:
        **kwargs: Overrides for the settings-derived client options

    Returns:
        Configured client instance

    Example:
        >>> client = create_client(poll_interval=0.5)
        >>> conversation = await client.start_conversation(Auth.secret("..."))
    """
    from ..config.settings import get_settings

    settings = get_settings()
    options = {
        "base_url": settings.api.base_url,
        "timeout": settings.api.timeout,
        "max_connections": settings.api.max_connections,
        "poll_interval": settings.stream.poll_interval,
    }
    options.update(kwargs)
    return DirectLineClient(**options)
