"""
Chat orchestrator — the top-level coordinator for one chat turn.

    received -> rate checked -> validated -> cache checked -> context resolved
      -> model selected -> provider called (retry inside timeout)
      -> context updated -> cache updated -> responded

Terminal failures: RateLimited, ValidationFailed, TimedOut, ChatError.

A cache hit returns before the context step, so a repeated message is not
appended to history a second time. Context is only touched after the
provider has answered; a failed turn leaves no trace in history.
"""

from __future__ import annotations

import logging
import time
from typing import Sequence

from andy.actions import extract_actions
from andy.agents.decision import ModelRouter
from andy.agents.intent import IntentAnalyzer
from andy.attachments import Attachment, AttachmentExtractor, TextExtractor, process_attachments
from andy.backends.base import BaseProvider, ProviderResponse
from andy.backends.registry import ProviderRegistry
from andy.cache import TTLCache
from andy.errors import (
    AppError,
    ChatError,
    ProviderError,
    RateLimited,
    ServiceInitError,
    TimedOut,
    ValidationFailed,
)
from andy.rate_limiter import GLOBAL_SCOPE, RateLimiter
from andy.resilience import retry, with_timeout
from andy.storage.backends.base import DocumentStore
from andy.storage.context_store import ContextStore
from andy.storage.models import ChatResponse, ConversationContext
from andy.validation import MessageValidator

logger = logging.getLogger(__name__)

CacheKey = tuple[str, str]


def _is_transient(error: BaseException) -> bool:
    """Retry provider errors the provider marked transient, and anything unexpected."""
    if isinstance(error, ProviderError):
        return error.retryable
    return True


def build_prompt(message: str, attachment_context: str, context: ConversationContext, history: int = 3) -> str:
    """Combine recent history, document analysis and the current request."""
    recent = context.conversation_history[-history:] if history > 0 else []
    previous = "\n".join(f"{m.role}: {m.content}" for m in recent)

    parts = [f"Previous Context: {previous}"]
    if attachment_context:
        parts.append(f"Document Analysis:\n{attachment_context}\n")
    parts.append(f"Current Request: {message}")
    parts.append(
        "\nFocus on providing specific, actionable financial guidance based on the "
        "complete context. If analyzing documents, highlight key financial "
        "implications and tax considerations."
    )
    return "\n".join(parts).strip()


class ChatOrchestrator:
    """
    Owns no global state: everything it coordinates is handed in, and the
    app's composition root builds exactly one per process.
    """

    def __init__(
        self,
        providers: ProviderRegistry | dict[str, BaseProvider],
        context_store: ContextStore,
        router: ModelRouter | None = None,
        rate_limiter: RateLimiter | None = None,
        cache: TTLCache[CacheKey, ChatResponse] | None = None,
        extractor: AttachmentExtractor | None = None,
        validator: MessageValidator | None = None,
        intent_analyzer: IntentAnalyzer | None = None,
        retry_attempts: int = 3,
        timeout_ms: float = 30_000,
        backoff_base: float = 0.0,
        backoff_max: float = 10.0,
        prompt_history: int = 3,
        rate_limit_scope: str = "global",
    ):
        if isinstance(providers, dict):
            providers = ProviderRegistry(providers)
        self.providers = providers
        self.context_store = context_store
        self.router = router or ModelRouter()
        self.rate_limiter = rate_limiter or RateLimiter()
        self.cache = cache if cache is not None else TTLCache()
        self.extractor = extractor or TextExtractor()
        self.validator = validator
        self.intent_analyzer = intent_analyzer or IntentAnalyzer()
        self.retry_attempts = retry_attempts
        self.timeout_ms = timeout_ms
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.prompt_history = prompt_history
        self.rate_limit_scope = rate_limit_scope
        self.stats = {
            "requests": 0,
            "cache_hits": 0,
            "provider_calls": 0,
            "errors": {},
        }

        for tier in (self.router.complex_model, self.router.baseline_model):
            if tier not in self.providers.names():
                raise ServiceInitError(f"Router tier '{tier}' has no configured provider")

    @classmethod
    def from_config(
        cls,
        cfg: dict,
        store: DocumentStore | None = None,
        providers: ProviderRegistry | dict[str, BaseProvider] | None = None,
        extractor: AttachmentExtractor | None = None,
    ) -> "ChatOrchestrator":
        """Build an orchestrator and its collaborators from config.yaml settings."""
        res = cfg.get("resilience", {})
        cache_cfg = cfg.get("cache", {})
        ctx_cfg = cfg.get("context", {})
        validation_enabled = cfg.get("validation", {}).get("enabled", True)

        return cls(
            providers=providers if providers is not None else ProviderRegistry.from_config(cfg),
            context_store=ContextStore(store=store, max_history=int(ctx_cfg.get("max_history", 50))),
            router=ModelRouter.from_config(cfg),
            rate_limiter=RateLimiter.from_config(cfg),
            cache=TTLCache(
                max_size=int(cache_cfg.get("max_size", 1000)),
                ttl_ms=float(cache_cfg.get("ttl_ms", 3_600_000)),
            ),
            extractor=extractor,
            validator=MessageValidator.from_config(cfg) if validation_enabled else None,
            intent_analyzer=IntentAnalyzer.from_config(cfg),
            retry_attempts=int(res.get("retry_attempts", 3)),
            timeout_ms=float(res.get("timeout_ms", 30_000)),
            backoff_base=float(res.get("backoff_base", 0.0)),
            backoff_max=float(res.get("backoff_max", 10.0)),
            prompt_history=int(ctx_cfg.get("prompt_history", 3)),
            rate_limit_scope=cfg.get("rate_limit", {}).get("scope", "global"),
        )

    @staticmethod
    def cache_key(user_id: str, message: str) -> CacheKey:
        return (user_id, message)

    def _scope(self, user_id: str) -> str:
        return user_id if self.rate_limit_scope == "user" else GLOBAL_SCOPE

    def _record_error(self, code: str) -> None:
        errors = self.stats["errors"]
        errors[code] = errors.get(code, 0) + 1

    async def process_message(
        self,
        user_id: str,
        message: str,
        attachments: Sequence[Attachment] | None = None,
    ) -> ChatResponse:
        """
        Run one chat turn and return the structured response.

        Raises RateLimited, ValidationFailed, TimedOut or ChatError. Raw
        provider detail is logged here and never carried in the raised error.
        """
        self.stats["requests"] += 1
        try:
            return await self._process(user_id, message, attachments)
        except AppError as e:
            self._record_error(e.code)
            raise

    async def _process(
        self,
        user_id: str,
        message: str,
        attachments: Sequence[Attachment] | None,
    ) -> ChatResponse:
        t0 = time.monotonic()

        scope = self._scope(user_id)
        if not self.rate_limiter.check_limit(scope):
            wait_ms = self.rate_limiter.time_until_reset(scope)
            logger.warning("Rate limit exceeded for scope %r (reset in %.0fms)", scope, wait_ms)
            raise RateLimited(retry_after_ms=wait_ms)

        if not user_id:
            raise ValidationFailed("User ID is required", code="INVALID_USER")
        if self.validator is not None:
            self.validator.validate(message)
        elif not message:
            raise ValidationFailed("Message cannot be empty", code="EMPTY_MESSAGE")

        key = self.cache_key(user_id, message)
        cached = self.cache.get(key)
        if cached is not None:
            self.stats["cache_hits"] += 1
            logger.debug("Cache hit for %s", user_id)
            return cached

        context = await self.context_store.get_context(user_id)

        attachment_context = ""
        if attachments:
            attachment_context = await process_attachments(list(attachments), self.extractor)

        decision = self.router.decide(message, context)
        prompt = build_prompt(message, attachment_context, context, self.prompt_history)

        try:
            provider = self.providers.get(decision.model)
            result: ProviderResponse = await with_timeout(
                retry(
                    lambda: self._complete(provider, prompt),
                    self.retry_attempts,
                    backoff_base=self.backoff_base,
                    backoff_max=self.backoff_max,
                    should_retry=_is_transient,
                ),
                self.timeout_ms,
            )
        except TimeoutError as e:
            logger.error("Timed out after %.0fms for %s (model=%s): %s", self.timeout_ms, user_id, decision.model, e)
            raise TimedOut() from e
        except ProviderError as e:
            logger.error(
                "Provider '%s' failed for %s (status=%s): %s",
                e.provider or decision.model, user_id, e.status_code, e.message,
            )
            raise ChatError() from e
        except Exception as e:
            logger.exception("Unexpected error processing message for %s: %s", user_id, e)
            raise ChatError() from e

        actions = extract_actions(result.text)
        intent = self.intent_analyzer.analyze(message)
        if intent.requires_action and not actions:
            logger.info(
                "Message for %s looked action-seeking (%s) but reply had no action directives",
                user_id, intent.module or "general",
            )

        response = ChatResponse(
            content=result.text,
            source=decision.model,
            actions=actions,
            confidence=result.confidence,
        )

        elapsed_ms = (time.monotonic() - t0) * 1000
        await self.context_store.update_context(
            user_id,
            message,
            response,
            processing_time_ms=round(elapsed_ms, 1),
            user_metadata=intent.as_metadata(),
        )
        self.cache.set(key, response)

        logger.info(
            "Answered %s via %s in %.0fms (%d actions, technical=%.2f, context=%.2f)",
            user_id, decision.model, elapsed_ms, len(actions),
            decision.technical_score, decision.context_complexity,
        )
        return response

    async def _complete(self, provider: BaseProvider, prompt: str) -> ProviderResponse:
        self.stats["provider_calls"] += 1
        result = await provider.complete(prompt)
        if not result.text.strip():
            raise ProviderError("Empty completion", provider=provider.name)
        return result
