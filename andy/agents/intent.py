"""
Intent analyzer — which finance module a message belongs to, and whether
the user is asking for something to be done rather than explained.

Keyword matching only. The orchestrator uses the verdict to tag history and
to notice when an action-seeking message gets a reply with no action
directives in it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_KEYWORDS = {
    "tax": ["tax", "impuestos", "1040", "w-2", "w2", "declaración", "irs"],
    "financial": ["budget", "presupuesto", "expenses", "gastos", "savings", "ahorros", "investment", "inversión"],
    "credit": ["credit", "crédito", "score", "dispute", "disputa", "reporte"],
    "action": [
        "file", "submit", "send", "process", "calculate", "verify", "fill",
        "realizar", "ejecutar", "hacer", "procesar", "enviar",
    ],
}

# module -> confidence when its keywords match; checked in this order
MODULES = (("TAX", "tax", 0.8), ("FINANCIAL", "financial", 0.7), ("CREDIT", "credit", 0.7))


@dataclass
class IntentAnalysis:
    module: str | None = None       # TAX | FINANCIAL | CREDIT
    confidence: float = 0.0
    requires_action: bool = False

    def as_metadata(self) -> dict:
        return {"module_type": self.module, "requires_action": self.requires_action}


class IntentAnalyzer:

    def __init__(self, keywords: dict[str, list[str]] | None = None):
        merged = {k: list(v) for k, v in DEFAULT_KEYWORDS.items()}
        for group, words in (keywords or {}).items():
            merged[group] = list(words)
        self.keywords = {k: [w.lower() for w in v] for k, v in merged.items()}

    @classmethod
    def from_config(cls, cfg: dict) -> "IntentAnalyzer":
        return cls(keywords=cfg.get("intent") or None)

    def _contains(self, text: str, group: str) -> bool:
        return any(k in text for k in self.keywords.get(group, []))

    def analyze(self, message: str) -> IntentAnalysis:
        text = message.lower()
        analysis = IntentAnalysis(requires_action=self._contains(text, "action"))
        for module, group, confidence in MODULES:
            if self._contains(text, group):
                analysis.module = module
                analysis.confidence = confidence
                break
        return analysis
