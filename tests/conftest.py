"""
Shared test fixtures and configuration for Direct Line client tests.

This file provides environment isolation, configuration reset and an
in-memory transport so connection tests never touch the network.
"""

import asyncio
import logging
import os
import warnings
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from directline.clients.base import BadStatusError, DirectLineTransport
from directline.config.settings import config_manager
from directline.core.models import (
    Activity,
    ActivityGroup,
    Auth,
    Conversation,
    ErrorResponse,
    ResourceResponse,
)

# Suppress specific warnings that can slow down tests
warnings.filterwarnings("ignore", category=DeprecationWarning)

# Configure logging for tests
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("directline").setLevel(logging.WARNING)


@pytest.fixture(autouse=True, scope="function")
def isolated_environment(tmp_path):
    """
    Isolate environment variables for each test to prevent test pollution.

    This ensures that configuration tests don't inherit environment variables
    from the host system, .env files, or other tests.
    """
    sensitive_prefixes = (
        "DIRECTLINE_",
        "LOG_LEVEL",
        "ENVIRONMENT",
        "APP_NAME",
        "API__",
        "STREAM__",
        "CLIENT__",
    )

    original_env = {
        key: value
        for key, value in os.environ.items()
        if key.upper().startswith(sensitive_prefixes)
    }
    for key in original_env:
        del os.environ[key]

    # Change working directory to temp path to avoid loading .env files
    original_cwd = os.getcwd()
    os.chdir(tmp_path)

    yield

    os.chdir(original_cwd)
    for key in list(os.environ):
        if key.upper().startswith(sensitive_prefixes):
            del os.environ[key]
    os.environ.update(original_env)


@pytest.fixture(autouse=True, scope="function")
def reset_global_state():
    """Reset the global configuration manager between tests."""
    config_manager.reset()
    yield
    config_manager.reset()


@pytest.fixture(scope="function")
def mock_http_client():
    """
    Provide a mock HTTP client for testing.

    This prevents tests from making real network calls and
    ensures consistent, fast test execution.
    """
    mock_client = AsyncMock()

    mock_response = MagicMock()
    mock_response.status_code = 200
    mock_response.text = ""
    mock_response.json.return_value = {"id": "activity-1"}

    mock_client.post.return_value = mock_response
    mock_client.get.return_value = mock_response
    return mock_client


@pytest.fixture(scope="function")
def mock_asyncio_sleep():
    """Mock asyncio.sleep so polling loops run without real delays."""
    with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        yield mock_sleep


def make_conversation(conversation_id: str = "c1", token: str = "t1") -> Conversation:
    return Conversation(conversationId=conversation_id, token=token, expires_in=1800)


def bad_status(code: str | None, message: str | None = None, status: int = 403) -> BadStatusError:
    """Build the error a transport raises for a service error envelope."""
    if code is None:
        return BadStatusError(status)
    envelope = ErrorResponse.model_validate({"error": {"code": code, "message": message}})
    return BadStatusError(status, envelope)


class FakeTransport(DirectLineTransport):
    """
    In-memory DirectLineTransport recording every call.

    Results are consumed in order; the last one repeats. A result that is an
    exception is raised instead of returned. Setting ``bootstrap_gate`` makes
    start/restart calls wait until the event is set.
    """

    def __init__(self):
        self.start_results: list = [make_conversation()]
        self.restart_results: list = []
        self.post_results: list = [ResourceResponse(id="activity-1")]

        self.start_calls = 0
        self.restart_calls: list[str] = []
        self.posts: list[tuple[str, str, Activity]] = []
        self.stream_opens: list[tuple[str, str]] = []
        self.streams_closed = 0
        self.closed = False

        self.bootstrap_gate: asyncio.Event | None = None
        self._groups: asyncio.Queue = asyncio.Queue()

    @staticmethod
    def _next(results: list):
        item = results.pop(0) if len(results) > 1 else results[0]
        if isinstance(item, BaseException):
            raise item
        return item

    async def start_conversation(self, auth: Auth) -> Conversation:
        self.start_calls += 1
        if self.bootstrap_gate is not None:
            await self.bootstrap_gate.wait()
        return self._next(self.start_results)

    async def restart_conversation(self, auth: Auth, conversation_id: str) -> Conversation:
        self.restart_calls.append(conversation_id)
        if self.bootstrap_gate is not None:
            await self.bootstrap_gate.wait()
        return self._next(self.restart_results)

    async def post_activity(self, token: str, conversation_id: str, activity: Activity) -> ResourceResponse:
        self.posts.append((token, conversation_id, activity))
        await asyncio.sleep(0)
        return self._next(self.post_results)

    def push_group(self, *texts: str, watermark: str | None = None) -> None:
        """Queue an activity group for the open stream."""
        activities = [Activity.message(text=text) for text in texts]
        self._groups.put_nowait(ActivityGroup(activities=activities, watermark=watermark))

    def push_error(self, error: BaseException) -> None:
        self._groups.put_nowait(error)

    def end_stream(self) -> None:
        self._groups.put_nowait(None)

    async def open_activity_stream(self, token: str, conversation_id: str):
        self.stream_opens.append((token, conversation_id))
        try:
            while True:
                item = await self._groups.get()
                if item is None:
                    return
                if isinstance(item, BaseException):
                    raise item
                yield item
        finally:
            self.streams_closed += 1

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def transport():
    """In-memory transport whose first start returns conversation c1/t1."""
    return FakeTransport()


@pytest.fixture
def auth():
    return Auth.secret("test-secret")
