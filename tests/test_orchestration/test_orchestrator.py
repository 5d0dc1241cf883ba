"""
Tests for the ConversationOrchestrator.
"""

import asyncio

import pytest

from conftest import bad_status, make_conversation
from directline.core.errors import BadArgumentError, FailedToConnectError
from directline.orchestration.orchestrator import ConversationOrchestrator
from directline.orchestration.state import StateRegister
from directline.orchestration.types import (
    Connecting,
    ConnectingFailed,
    Failed,
    Ready,
    TokenExpired,
    Uninitialized,
)


@pytest.fixture
def orchestrator(transport, auth):
    return ConversationOrchestrator(transport, auth)


class TestConversation:
    @pytest.mark.asyncio
    async def test_starts_conversation_when_uninitialized(self, orchestrator, transport):
        conversation = await orchestrator.conversation()

        assert conversation == make_conversation()
        assert transport.start_calls == 1
        assert orchestrator.state == Ready(conversation)

    @pytest.mark.asyncio
    async def test_reuses_ready_conversation(self, orchestrator, transport):
        first = await orchestrator.conversation()
        second = await orchestrator.conversation()

        assert first == second
        assert transport.start_calls == 1

    @pytest.mark.asyncio
    async def test_publishes_connecting_then_ready(self, orchestrator):
        states = orchestrator.register.subscribe()

        conversation = await orchestrator.conversation()

        assert [await anext(states) for _ in range(3)] == [
            Uninitialized(),
            Connecting(),
            Ready(conversation),
        ]

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_start(self, orchestrator, transport):
        """Test that N concurrent callers trigger exactly one start call."""
        transport.bootstrap_gate = asyncio.Event()

        callers = [asyncio.create_task(orchestrator.conversation()) for _ in range(10)]
        await asyncio.sleep(0)
        assert orchestrator.state == Connecting()

        transport.bootstrap_gate.set()
        results = await asyncio.gather(*callers)

        assert transport.start_calls == 1
        assert all(result == make_conversation() for result in results)

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_failure(self, orchestrator, transport):
        transport.start_results = [bad_status("BadArgument", "no bot")]
        transport.bootstrap_gate = asyncio.Event()

        callers = [asyncio.create_task(orchestrator.conversation()) for _ in range(5)]
        await asyncio.sleep(0)
        transport.bootstrap_gate.set()
        results = await asyncio.gather(*callers, return_exceptions=True)

        assert transport.start_calls == 1
        assert results == [BadArgumentError("no bot")] * 5
        assert orchestrator.state == Failed(BadArgumentError("no bot"))

    @pytest.mark.asyncio
    async def test_failed_state_is_sticky(self, orchestrator, transport):
        """Test that a failed connection is not retried implicitly."""
        transport.start_results = [bad_status(None, status=500), make_conversation()]

        with pytest.raises(FailedToConnectError):
            await orchestrator.conversation()
        with pytest.raises(FailedToConnectError):
            await orchestrator.conversation()

        assert transport.start_calls == 1

    @pytest.mark.asyncio
    async def test_restarts_expired_conversation(self, transport, auth):
        transport.restart_results = [make_conversation("c1", "t2")]
        register = StateRegister(TokenExpired(make_conversation("c1", "t1")))
        orchestrator = ConversationOrchestrator(transport, auth, register)

        conversation = await orchestrator.conversation()

        assert transport.restart_calls == ["c1"]
        assert transport.start_calls == 0
        assert conversation.conversation_id == "c1"
        assert conversation.token == "t2"

    @pytest.mark.asyncio
    async def test_connecting_failed_triggers_new_start(self, transport, auth):
        orchestrator = ConversationOrchestrator(transport, auth, StateRegister(ConnectingFailed()))

        await orchestrator.conversation()

        assert transport.start_calls == 1

    @pytest.mark.asyncio
    async def test_cancelled_bootstrap_lets_waiters_retry(self, orchestrator, transport):
        """Test that cancelling the bootstrapping caller does not strand waiters."""
        transport.bootstrap_gate = asyncio.Event()

        owner = asyncio.create_task(orchestrator.conversation())
        await asyncio.sleep(0)
        waiter = asyncio.create_task(orchestrator.conversation())
        await asyncio.sleep(0)

        owner.cancel()
        await asyncio.gather(owner, return_exceptions=True)
        transport.bootstrap_gate.set()

        conversation = await asyncio.wait_for(waiter, timeout=1)

        assert conversation == make_conversation()
        assert transport.start_calls == 2
        assert orchestrator.state == Ready(conversation)


class TestMarkTokenExpired:
    def test_marks_ready_conversation(self, transport, auth):
        conversation = make_conversation()
        orchestrator = ConversationOrchestrator(transport, auth, StateRegister(Ready(conversation)))

        orchestrator.mark_token_expired(conversation)

        assert orchestrator.state == TokenExpired(conversation)

    def test_ignored_when_token_already_refreshed(self, transport, auth):
        refreshed = make_conversation("c1", "t2")
        orchestrator = ConversationOrchestrator(transport, auth, StateRegister(Ready(refreshed)))

        orchestrator.mark_token_expired(make_conversation("c1", "t1"))

        assert orchestrator.state == Ready(refreshed)

    def test_ignored_while_connecting(self, transport, auth):
        orchestrator = ConversationOrchestrator(transport, auth, StateRegister(Connecting()))

        orchestrator.mark_token_expired(make_conversation())

        assert orchestrator.state == Connecting()


class TestResetState:
    @pytest.mark.parametrize(
        "state",
        [Uninitialized(), Connecting(), ConnectingFailed(), Failed(FailedToConnectError())],
    )
    def test_noop_without_conversation(self, transport, auth, state):
        register = StateRegister(state)
        orchestrator = ConversationOrchestrator(transport, auth, register)

        orchestrator.reset_state()

        assert register.get() == state

    def test_ready_becomes_token_expired(self, transport, auth):
        """Test that reset keeps the conversation identity."""
        conversation = make_conversation("c1", "t1")
        orchestrator = ConversationOrchestrator(transport, auth, StateRegister(Ready(conversation)))

        orchestrator.reset_state()

        assert orchestrator.state == TokenExpired(conversation)
        assert orchestrator.state.conversation.conversation_id == "c1"

    def test_token_expired_stays_token_expired(self, transport, auth):
        conversation = make_conversation()
        orchestrator = ConversationOrchestrator(transport, auth, StateRegister(TokenExpired(conversation)))

        orchestrator.reset_state()

        assert orchestrator.state == TokenExpired(conversation)
