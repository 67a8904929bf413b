"""
Session service — explicit chat sessions with their own lifecycle.

Unlike the lightweight per-user context, session writes are load-bearing:
creating or updating a session fails closed when the durable store fails.
Sessions idle longer than the retention window drop out of listings but
are never deleted here.
"""

from __future__ import annotations

import logging
from typing import Callable

from andy.errors import PersistenceError
from andy.storage.backends.base import DocumentStore
from andy.storage.models import ChatSession, SessionMetadata, SessionState, now_ms

logger = logging.getLogger(__name__)

SESSIONS_COLLECTION = "sessions"
DAY_MS = 24 * 60 * 60 * 1000


class SessionService:

    def __init__(
        self,
        store: DocumentStore,
        max_age_days: int = 30,
        list_limit: int = 10,
        clock: Callable[[], int] = now_ms,
    ):
        self.store = store
        self.max_age_days = max_age_days
        self.list_limit = list_limit
        self._clock = clock

    @classmethod
    def from_config(cls, cfg: dict, store: DocumentStore) -> "SessionService":
        s_cfg = cfg.get("sessions", {})
        return cls(
            store=store,
            max_age_days=int(s_cfg.get("max_age_days", 30)),
            list_limit=int(s_cfg.get("list_limit", 10)),
        )

    async def create_new_session(self, user_id: str, session_type: str = "general") -> ChatSession:
        """Create and persist a session. Raises PersistenceError if the write fails."""
        ts = self._clock()
        session = ChatSession(
            id=f"session_{ts}_{user_id}",
            user_id=user_id,
            messages=[],
            context=SessionState(last_interaction=ts, pending_actions=[], active_module=None),
            metadata=SessionMetadata(created_at=ts, last_accessed=ts, session_type=session_type),
        )
        try:
            await self.store.put(SESSIONS_COLLECTION, session.id, session.to_dict())
        except Exception as e:
            logger.error("Error creating session for %s: %s", user_id, e)
            raise PersistenceError(
                "Failed to create new session", code="SESSION_CREATION_ERROR"
            ) from e

        logger.info("New session created: %s", session.id)
        return session

    async def get_session_context(self, session_id: str) -> ChatSession | None:
        """Return the session, or None if it does not exist."""
        try:
            doc = await self.store.get(SESSIONS_COLLECTION, session_id)
        except Exception as e:
            logger.error("Error retrieving session %s: %s", session_id, e)
            raise PersistenceError(
                "Failed to retrieve session context", code="CONTEXT_RETRIEVAL_ERROR"
            ) from e

        if doc is None:
            logger.warning("Session not found: %s", session_id)
            return None

        session = ChatSession.from_dict(doc, session_id=session_id)
        await self._touch(session_id)
        return session

    async def update_session_context(self, session_id: str, updates: dict) -> None:
        """
        Merge updates into a stored session. Keys may be dotted paths
        ("context.active_module"). Stamps metadata.last_modified.
        """
        fields = {k: v for k, v in updates.items() if k not in ("id", "user_id")}
        fields["metadata.last_modified"] = self._clock()
        try:
            await self.store.update(SESSIONS_COLLECTION, session_id, fields)
        except Exception as e:
            logger.error("Error updating session %s: %s", session_id, e)
            raise PersistenceError(
                "Failed to update session context", code="CONTEXT_UPDATE_ERROR"
            ) from e
        logger.info("Session %s updated", session_id)

    async def get_user_sessions(self, user_id: str) -> list[ChatSession]:
        """The user's sessions accessed within the retention window, newest first."""
        cutoff = self._clock() - self.max_age_days * DAY_MS
        try:
            rows = await self.store.query(
                SESSIONS_COLLECTION,
                where=[
                    ("user_id", "==", user_id),
                    ("metadata.last_accessed", ">=", cutoff),
                ],
                order_by="metadata.last_accessed",
                descending=True,
                limit=self.list_limit,
            )
        except Exception as e:
            logger.error("Error listing sessions for %s: %s", user_id, e)
            raise PersistenceError(
                "Failed to retrieve user sessions", code="SESSION_RETRIEVAL_ERROR"
            ) from e
        return [ChatSession.from_dict(doc, session_id=doc_id) for doc_id, doc in rows]

    async def _touch(self, session_id: str) -> None:
        try:
            await self.store.update(
                SESSIONS_COLLECTION, session_id, {"metadata.last_accessed": self._clock()}
            )
        except Exception as e:
            logger.warning("Failed to update last accessed for %s: %s", session_id, e)
