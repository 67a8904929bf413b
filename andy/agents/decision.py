"""
Model router — picks which provider tier answers a message.

A deterministic heuristic gate, not a trained classifier:

  technical_score    = technical words / content words in the message
  context_complexity = min(1, len(serialized context) / context_norm_chars)

The high-capability tier wins when technical_score > technical_threshold
or context_complexity > context_threshold; everything else goes to the
baseline tier. Stop words ("my", "for", ...) don't count as content words,
so a short technical question isn't diluted by filler. A word is technical
when it contains one of the vocabulary stems ("deduct" matches
"deductions"). Thresholds, vocabulary and stop words all come from config.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass

from andy.storage.models import ConversationContext

logger = logging.getLogger(__name__)

DEFAULT_TECHNICAL_KEYWORDS = [
    "tax", "impuesto", "w2", "1099", "1040", "deduct", "credit",
    "calculat", "analysis", "analyz", "report", "form", "irs",
    "refund", "withholding", "audit",
]

DEFAULT_STOP_WORDS = [
    "a", "an", "the", "my", "me", "i", "we", "our", "you", "your",
    "for", "to", "of", "and", "or", "in", "on", "at", "by", "with",
    "from", "about", "is", "are", "am", "be", "do", "does", "can",
    "could", "would", "please", "it", "this", "that", "what", "how",
]

_WORD_RE = re.compile(r"[^\w]+", re.UNICODE)


@dataclass
class RoutingDecision:
    """The router's verdict plus the numbers behind it (for logging/debug)."""
    model: str
    technical_score: float = 0.0
    context_complexity: float = 0.0
    reasoning: str = ""


class ModelRouter:
    """Routes each message to the "claude" or "gpt4" tier."""

    def __init__(
        self,
        technical_keywords: list[str] | None = None,
        stop_words: list[str] | None = None,
        technical_threshold: float = 0.7,
        context_threshold: float = 0.8,
        context_norm_chars: int = 1000,
        complex_model: str = "claude",
        baseline_model: str = "gpt4",
    ):
        self.technical_keywords = [k.lower() for k in (technical_keywords or DEFAULT_TECHNICAL_KEYWORDS)]
        self.stop_words = {w.lower() for w in (stop_words if stop_words is not None else DEFAULT_STOP_WORDS)}
        self.technical_threshold = technical_threshold
        self.context_threshold = context_threshold
        self.context_norm_chars = context_norm_chars
        self.complex_model = complex_model
        self.baseline_model = baseline_model

    @classmethod
    def from_config(cls, cfg: dict) -> "ModelRouter":
        """Create a ModelRouter from the routing: section of config.yaml."""
        r_cfg = cfg.get("routing", {})
        return cls(
            technical_keywords=r_cfg.get("technical_keywords"),
            stop_words=r_cfg.get("stop_words"),
            technical_threshold=float(r_cfg.get("technical_threshold", 0.7)),
            context_threshold=float(r_cfg.get("context_threshold", 0.8)),
            context_norm_chars=int(r_cfg.get("context_norm_chars", 1000)),
            complex_model=r_cfg.get("complex_model", "claude"),
            baseline_model=r_cfg.get("baseline_model", "gpt4"),
        )

    def _content_words(self, message: str) -> list[str]:
        words = [_WORD_RE.sub("", w.lower()) for w in message.split()]
        return [w for w in words if w and w not in self.stop_words]

    def technical_score(self, message: str) -> float:
        words = self._content_words(message)
        if not words:
            return 0.0
        technical = sum(
            1 for w in words if any(k in w for k in self.technical_keywords)
        )
        return technical / len(words)

    def context_complexity(self, context: ConversationContext | dict | None) -> float:
        if context is None:
            return 0.0
        data = context.to_dict() if isinstance(context, ConversationContext) else context
        serialized = json.dumps(data, default=str)
        return min(1.0, len(serialized) / self.context_norm_chars)

    def decide(self, message: str, context: ConversationContext | dict | None = None) -> RoutingDecision:
        score = self.technical_score(message)
        complexity = self.context_complexity(context)

        if score > self.technical_threshold:
            model, why = self.complex_model, f"technical score {score:.2f} > {self.technical_threshold}"
        elif complexity > self.context_threshold:
            model, why = self.complex_model, f"context complexity {complexity:.2f} > {self.context_threshold}"
        else:
            model, why = self.baseline_model, "below both thresholds"

        logger.debug("Routing: model=%s technical=%.2f context=%.2f (%s)", model, score, complexity, why)
        return RoutingDecision(
            model=model,
            technical_score=score,
            context_complexity=complexity,
            reasoning=why,
        )

    def determine_model(self, message: str, context: ConversationContext | dict | None = None) -> str:
        return self.decide(message, context).model
