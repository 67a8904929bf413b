"""
Tests for the per-user context store.
"""

import pytest
from unittest.mock import AsyncMock

from andy.errors import ValidationFailed
from andy.storage.backends.memory import MemoryStore
from andy.storage.context_store import ContextStore, context_collection
from andy.storage.models import ChatResponse, ConversationContext


def _response(text="answer", source="gpt4", confidence=None):
    return ChatResponse(content=text, source=source, confidence=confidence)


@pytest.mark.asyncio
async def test_unknown_user_gets_empty_default():
    store = ContextStore()
    ctx = await store.get_context("nobody")
    assert isinstance(ctx, ConversationContext)
    assert ctx.conversation_history == []
    assert ctx.metrics.total_interactions == 0
    assert ctx.last_response is None


@pytest.mark.asyncio
async def test_update_appends_user_and_assistant():
    store = ContextStore(clock=lambda: 1234)
    await store.update_context("u1", "hello", _response("hi!", "claude", 0.9), processing_time_ms=12.5)

    ctx = await store.get_context("u1")
    assert [m.role for m in ctx.conversation_history] == ["user", "assistant"]
    user_msg, assistant_msg = ctx.conversation_history
    assert user_msg.content == "hello"
    assert assistant_msg.content == "hi!"
    assert assistant_msg.metadata == {"confidence": 0.9, "source": "claude", "processing_time_ms": 12.5}
    assert user_msg.timestamp == assistant_msg.timestamp == 1234
    assert ctx.last_message == "hello"
    assert ctx.last_response.content == "hi!"
    assert ctx.timestamp == 1234
    assert ctx.metrics.total_interactions == 1
    assert ctx.metrics.last_update_time == 1234


@pytest.mark.asyncio
async def test_metrics_count_interactions():
    store = ContextStore()
    for i in range(4):
        await store.update_context("u1", f"m{i}", _response())
    assert (await store.get_context("u1")).metrics.total_interactions == 4


@pytest.mark.asyncio
async def test_history_cap_counts_messages():
    """30 exchanges = 60 messages; cap 50 keeps messages 11..60."""
    store = ContextStore(max_history=50)
    for i in range(30):
        await store.update_context("u1", f"question {i}", _response(f"answer {i}"))

    history = (await store.get_context("u1")).conversation_history
    assert len(history) == 50
    # The 11th message appended overall is the user message of exchange 5
    assert history[0].role == "user"
    assert history[0].content == "question 5"
    assert history[-1].content == "answer 29"


@pytest.mark.asyncio
async def test_history_cap_after_sixty_exchanges():
    store = ContextStore(max_history=50)
    for i in range(60):
        await store.update_context("u1", f"question {i}", _response(f"answer {i}"))

    history = (await store.get_context("u1")).conversation_history
    assert len(history) == 50
    assert history[0].content == "question 35"
    assert history[-1].content == "answer 59"


@pytest.mark.asyncio
async def test_odd_cap_can_start_with_assistant_message():
    store = ContextStore(max_history=3)
    for i in range(3):
        await store.update_context("u1", f"q{i}", _response(f"a{i}"))
    history = (await store.get_context("u1")).conversation_history
    assert [m.content for m in history] == ["a1", "q2", "a2"]


@pytest.mark.asyncio
@pytest.mark.parametrize("user_id,message", [("", "hello"), ("u1", ""), (None, "hello"), ("u1", None)])
async def test_update_requires_user_and_message(user_id, message):
    store = ContextStore()
    with pytest.raises(ValidationFailed) as exc:
        await store.update_context(user_id, message, _response())
    assert exc.value.code == "INVALID_CONTEXT_UPDATE"
    assert store.user_count() == 0


@pytest.mark.asyncio
async def test_update_persists_snapshot():
    backend = MemoryStore()
    store = ContextStore(store=backend)
    await store.update_context("u1", "hello", _response("hi"))

    doc = await backend.get(context_collection("u1"), "current")
    assert doc["last_message"] == "hello"
    assert len(doc["conversation_history"]) == 2
    assert "last_updated" in doc


@pytest.mark.asyncio
async def test_persistence_failure_is_swallowed():
    """A failing durable store never aborts the in-memory update."""
    backend = MemoryStore()
    backend.put = AsyncMock(side_effect=OSError("disk full"))
    store = ContextStore(store=backend)

    ctx = await store.update_context("u1", "hello", _response("hi"))

    assert ctx.metrics.total_interactions == 1
    assert len((await store.get_context("u1")).conversation_history) == 2
    backend.put.assert_awaited_once()


@pytest.mark.asyncio
async def test_context_hydrates_from_durable_store():
    backend = MemoryStore()
    first = ContextStore(store=backend)
    await first.update_context("u1", "hello", _response("hi"))

    # Fresh process, same backend
    second = ContextStore(store=backend)
    ctx = await second.get_context("u1")
    assert ctx.last_message == "hello"
    assert len(ctx.conversation_history) == 2

    await second.update_context("u1", "again", _response("yes"))
    assert len((await second.get_context("u1")).conversation_history) == 4


@pytest.mark.asyncio
async def test_hydration_failure_returns_default():
    backend = MemoryStore()
    backend.get = AsyncMock(side_effect=ConnectionError("offline"))
    store = ContextStore(store=backend)

    ctx = await store.get_context("u1")
    assert ctx.conversation_history == []


@pytest.mark.asyncio
async def test_concurrent_updates_last_writer_wins():
    """
    Updates for one user are not serialized. Each update is atomic in memory,
    so two back-to-back updates both land; the later one defines the context.
    """
    import asyncio

    store = ContextStore(store=MemoryStore())
    await asyncio.gather(
        store.update_context("u1", "first", _response("a1")),
        store.update_context("u1", "second", _response("a2")),
    )
    ctx = await store.get_context("u1")
    assert ctx.last_message == "second"
    assert ctx.metrics.total_interactions == 2


# ---------------------------------------------------------------------------
# Restart safety: stored history is never replaced by a partial one
# ---------------------------------------------------------------------------

class FlakyStore(MemoryStore):
    """MemoryStore whose reads can fail a set number of times or wait on a gate."""

    def __init__(self):
        super().__init__()
        self.fail_reads = 0
        self.gate = None
        self.reads = 0

    async def get(self, collection, doc_id):
        self.reads += 1
        if self.gate is not None:
            gate, self.gate = self.gate, None
            await gate.wait()
        elif self.fail_reads:
            self.fail_reads -= 1
            raise OSError("disk unavailable")
        return await super().get(collection, doc_id)


async def _seed(backend, exchanges=5):
    first = ContextStore(store=backend)
    for i in range(exchanges):
        await first.update_context("u1", f"question {i}", _response(f"answer {i}"))


async def _stored_history(backend):
    doc = await backend.get(context_collection("u1"), "current")
    return [m["content"] for m in doc["conversation_history"]]


@pytest.mark.asyncio
async def test_update_after_restart_keeps_stored_history():
    backend = MemoryStore()
    await _seed(backend)

    restarted = ContextStore(store=backend)
    ctx = await restarted.update_context("u1", "new", _response("fresh"))

    assert len(ctx.conversation_history) == 12
    assert ctx.metrics.total_interactions == 6
    stored = await _stored_history(backend)
    assert len(stored) == 12
    assert stored[0] == "question 0"
    assert stored[-2:] == ["new", "fresh"]


@pytest.mark.asyncio
async def test_failed_load_is_retried_on_next_access():
    backend = FlakyStore()
    await _seed(backend)
    backend.fail_reads = 1

    restarted = ContextStore(store=backend)
    assert (await restarted.get_context("u1")).conversation_history == []

    await restarted.update_context("u1", "new", _response("fresh"))
    assert len(await _stored_history(backend)) == 12


@pytest.mark.asyncio
async def test_update_while_store_unreadable_does_not_overwrite():
    backend = FlakyStore()
    await _seed(backend)
    backend.fail_reads = 1

    restarted = ContextStore(store=backend)
    await restarted.update_context("u1", "offline", _response("noted"))
    assert len(await _stored_history(backend)) == 10

    # Store readable again: the in-memory exchange is merged after the stored ones
    await restarted.update_context("u1", "back", _response("welcome"))
    stored = await _stored_history(backend)
    assert len(stored) == 14
    assert stored[10:] == ["offline", "noted", "back", "welcome"]
    assert (await restarted.get_context("u1")).metrics.total_interactions == 7


@pytest.mark.asyncio
async def test_concurrent_first_requests_keep_stored_history():
    import asyncio

    backend = FlakyStore()
    await _seed(backend)
    restarted = ContextStore(store=backend)

    gate = backend.gate = asyncio.Event()
    loading = asyncio.create_task(restarted.get_context("u1"))
    await asyncio.sleep(0)

    # The second request cannot read and lands in memory first
    backend.fail_reads = 1
    await restarted.update_context("u1", "racing", _response("ok"))

    gate.set()
    ctx = await loading
    assert len(ctx.conversation_history) == 12
    assert [m.content for m in ctx.conversation_history[-2:]] == ["racing", "ok"]
    assert ctx.last_message == "racing"
    assert ctx.metrics.total_interactions == 6


@pytest.mark.asyncio
async def test_concurrent_first_updates_both_build_on_stored_history():
    import asyncio

    backend = MemoryStore()
    await _seed(backend)
    restarted = ContextStore(store=backend)

    await asyncio.gather(
        restarted.update_context("u1", "first", _response("a1")),
        restarted.update_context("u1", "second", _response("a2")),
    )
    stored = await _stored_history(backend)
    assert stored[0] == "question 0"
    assert stored[-4:] == ["first", "a1", "second", "a2"]
