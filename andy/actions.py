"""
Action directives embedded in model output, e.g.

    Let me pull that form for you. [ACTION:FORM_REQUEST:W-9]

Best-effort parsing: a reply with no markers simply yields no actions.
Results are grouped by pattern in the order below, then by position.
"""

from __future__ import annotations

import re

from andy.storage.models import Action

ACTION_PATTERNS: list[tuple[str, re.Pattern]] = [
    ("FORM_REQUEST", re.compile(r"\[ACTION:FORM_REQUEST:(.*?)\]")),
    ("CALCULATION", re.compile(r"\[ACTION:CALCULATION:(.*?)\]")),
    ("VERIFICATION", re.compile(r"\[ACTION:VERIFICATION:(.*?)\]")),
]


def extract_actions(text: str) -> tuple[Action, ...]:
    actions = []
    for action_type, pattern in ACTION_PATTERNS:
        for match in pattern.finditer(text or ""):
            actions.append(Action(type=action_type, payload=match.group(1).strip()))
    return tuple(actions)
