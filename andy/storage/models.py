"""
Data models for conversations and sessions.
These define the shape of data flowing through the orchestrator and into
the durable store. Timestamps are integer epoch milliseconds throughout.
"""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from uuid import uuid4


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class Message:
    """A single message in a conversation history. Immutable once created."""
    content: str
    role: str                # "user" | "assistant"
    id: str = field(default_factory=lambda: uuid4().hex)
    timestamp: int = field(default_factory=now_ms)
    metadata: dict | None = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Message":
        return cls(
            id=data.get("id") or uuid4().hex,
            content=data.get("content", ""),
            role=data.get("role", "user"),
            timestamp=int(data.get("timestamp", 0)),
            metadata=data.get("metadata"),
        )


@dataclass(frozen=True)
class Action:
    """A structured directive parsed out of model output."""
    type: str                # FORM_REQUEST | CALCULATION | VERIFICATION
    payload: str


@dataclass(frozen=True)
class ChatResponse:
    """One orchestrated answer. Cached and appended into context."""
    content: str
    source: str              # "claude" | "gpt4"
    actions: tuple[Action, ...] = ()
    confidence: float | None = None

    def to_dict(self) -> dict:
        return {
            "content": self.content,
            "source": self.source,
            "actions": [{"type": a.type, "payload": a.payload} for a in self.actions],
            "confidence": self.confidence,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ChatResponse":
        return cls(
            content=data.get("content", ""),
            source=data.get("source", ""),
            actions=tuple(Action(type=a["type"], payload=a.get("payload", "")) for a in data.get("actions", [])),
            confidence=data.get("confidence"),
        )


@dataclass
class ContextMetrics:
    total_interactions: int = 0
    last_update_time: int = 0


@dataclass
class ConversationContext:
    """
    Rolling conversation state for one user. Owned by the ContextStore;
    mutate only through ContextStore.update_context().
    """
    last_message: str = ""
    last_response: ChatResponse | None = None
    timestamp: int = 0
    conversation_history: list[Message] = field(default_factory=list)
    metrics: ContextMetrics = field(default_factory=ContextMetrics)

    def to_dict(self) -> dict:
        return {
            "last_message": self.last_message,
            "last_response": self.last_response.to_dict() if self.last_response else None,
            "timestamp": self.timestamp,
            "conversation_history": [m.to_dict() for m in self.conversation_history],
            "metrics": asdict(self.metrics),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ConversationContext":
        last_response = data.get("last_response")
        metrics = data.get("metrics") or {}
        return cls(
            last_message=data.get("last_message", ""),
            last_response=ChatResponse.from_dict(last_response) if last_response else None,
            timestamp=int(data.get("timestamp", 0)),
            conversation_history=[Message.from_dict(m) for m in data.get("conversation_history", [])],
            metrics=ContextMetrics(
                total_interactions=int(metrics.get("total_interactions", 0)),
                last_update_time=int(metrics.get("last_update_time", 0)),
            ),
        )


@dataclass
class SessionState:
    last_interaction: int = 0
    pending_actions: list[str] = field(default_factory=list)
    active_module: str | None = None


@dataclass
class SessionMetadata:
    created_at: int = 0
    last_accessed: int = 0
    session_type: str = "general"
    last_modified: int | None = None


@dataclass
class ChatSession:
    """An explicit session document with its own lifecycle."""
    id: str
    user_id: str
    messages: list[Message] = field(default_factory=list)
    context: SessionState = field(default_factory=SessionState)
    metadata: SessionMetadata = field(default_factory=SessionMetadata)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "messages": [m.to_dict() for m in self.messages],
            "context": asdict(self.context),
            "metadata": asdict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: dict, session_id: str | None = None) -> "ChatSession":
        """Build from a stored document, filling gaps the way old documents need."""
        ctx = data.get("context") or {}
        meta = data.get("metadata") or {}
        ts = now_ms()
        return cls(
            id=session_id or data.get("id", ""),
            user_id=data.get("user_id", ""),
            messages=[Message.from_dict(m) for m in data.get("messages", [])],
            context=SessionState(
                last_interaction=ctx.get("last_interaction") or ts,
                pending_actions=list(ctx.get("pending_actions") or []),
                active_module=ctx.get("active_module"),
            ),
            metadata=SessionMetadata(
                created_at=meta.get("created_at") or ts,
                last_accessed=meta.get("last_accessed") or ts,
                session_type=meta.get("session_type") or "general",
                last_modified=meta.get("last_modified"),
            ),
        )
