"""
Per-user conversation context.

Contexts live in memory for the life of the process and are mirrored to the
durable store after every update. Mirroring is best-effort: a failed write is
logged and dropped so the chat keeps flowing. A snapshot is only written
once the stored copy has been loaded, so a failed read can never shrink the
saved history. History is a sliding window of individual messages (a
user/assistant exchange counts as two).

Concurrent updates for the same user are last-writer-wins. Within one event
loop a single update_context() has no await between reading the current
context and installing the new one, so an update is never torn; two
interleaved requests can still each build on the same predecessor and the
later one replaces the earlier.
"""

from __future__ import annotations

import logging
from typing import Callable

from andy.errors import ValidationFailed
from andy.storage.backends.base import DocumentStore
from andy.storage.models import (
    ChatResponse,
    ContextMetrics,
    ConversationContext,
    Message,
    now_ms,
)

logger = logging.getLogger(__name__)

CONTEXT_DOC_ID = "current"


def context_collection(user_id: str) -> str:
    return f"users/{user_id}/context"


class ContextStore:
    """In-memory context map with best-effort durable mirroring."""

    def __init__(
        self,
        store: DocumentStore | None = None,
        max_history: int = 50,
        clock: Callable[[], int] = now_ms,
    ):
        self.store = store
        self.max_history = max_history
        self._clock = clock
        self._contexts: dict[str, ConversationContext] = {}
        self._hydrated: set[str] = set()

    async def get_context(self, user_id: str) -> ConversationContext:
        """
        Return the user's context, or an empty default. Never raises.

        Until the durable copy has been read successfully, every lookup
        retries the load so history survives a restart.
        """
        await self._hydrate(user_id)
        return self._contexts.get(user_id) or ConversationContext()

    async def _hydrate(self, user_id: str) -> bool:
        """
        Load the persisted context once. Returns True when the in-memory
        context is known to include everything the durable store holds.
        """
        if self.store is None or not user_id:
            return True
        if user_id in self._hydrated:
            return True

        try:
            doc = await self.store.get(context_collection(user_id), CONTEXT_DOC_ID)
            loaded = ConversationContext.from_dict(doc) if doc else None
        except Exception as e:
            logger.warning("Failed to load persisted context for %s: %s", user_id, e)
            return False

        # Another request may have finished hydrating while we were reading
        if user_id in self._hydrated:
            return True
        self._hydrated.add(user_id)
        if loaded is None:
            return True

        current = self._contexts.get(user_id)
        if current is not None:
            # Updates landed before the load: they are newer than the stored copy
            loaded = self._merge(loaded, current)
        self._contexts[user_id] = loaded
        logger.debug(
            "Hydrated context for %s (%d messages)",
            user_id, len(loaded.conversation_history),
        )
        return True

    def _merge(self, stored: ConversationContext, recent: ConversationContext) -> ConversationContext:
        seen = {m.id for m in stored.conversation_history}
        history = stored.conversation_history + [
            m for m in recent.conversation_history if m.id not in seen
        ]
        return ConversationContext(
            last_message=recent.last_message,
            last_response=recent.last_response,
            timestamp=recent.timestamp,
            conversation_history=history[-self.max_history:],
            metrics=ContextMetrics(
                total_interactions=stored.metrics.total_interactions + recent.metrics.total_interactions,
                last_update_time=recent.metrics.last_update_time,
            ),
        )

    async def update_context(
        self,
        user_id: str,
        message: str,
        response: ChatResponse,
        processing_time_ms: float | None = None,
        user_metadata: dict | None = None,
    ) -> ConversationContext:
        """
        Append the exchange to the user's history and persist a snapshot.

        Raises ValidationFailed if user_id or message is empty. Persistence
        failures never propagate. The stored history is loaded first; if it
        cannot be read, the update stays in memory and is merged with it on
        a later successful load.
        """
        if not user_id or not message:
            raise ValidationFailed(
                "User ID and message are required",
                code="INVALID_CONTEXT_UPDATE",
            )

        hydrated = await self._hydrate(user_id)
        current = self._contexts.get(user_id) or ConversationContext()
        timestamp = self._clock()

        user_msg = Message(
            content=message,
            role="user",
            timestamp=timestamp,
            metadata=user_metadata or None,
        )
        assistant_msg = Message(
            content=response.content,
            role="assistant",
            timestamp=timestamp,
            metadata={
                "confidence": response.confidence,
                "source": response.source,
                "processing_time_ms": processing_time_ms,
            },
        )
        history = [*current.conversation_history, user_msg, assistant_msg]
        if len(history) > self.max_history:
            history = history[-self.max_history:]

        updated = ConversationContext(
            last_message=message,
            last_response=response,
            timestamp=timestamp,
            conversation_history=history,
            metrics=ContextMetrics(
                total_interactions=current.metrics.total_interactions + 1,
                last_update_time=timestamp,
            ),
        )
        self._contexts[user_id] = updated

        if hydrated or user_id in self._hydrated:
            await self._persist(user_id, updated)
        else:
            # Writing now would replace stored history with this partial one
            logger.warning("Context for %s kept in memory only until the stored copy loads", user_id)
        return updated

    async def _persist(self, user_id: str, ctx: ConversationContext) -> bool:
        """Mirror the snapshot to durable storage. Returns False on failure."""
        if self.store is None:
            return False
        try:
            doc = ctx.to_dict()
            doc["last_updated"] = self._clock()
            await self.store.put(context_collection(user_id), CONTEXT_DOC_ID, doc)
            return True
        except Exception as e:
            logger.warning("Failed to persist context for %s: %s", user_id, e)
            return False

    def user_count(self) -> int:
        return len(self._contexts)
