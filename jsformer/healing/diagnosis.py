"""Classifies failure text for repair prompts. Advisory only."""

from __future__ import annotations

from enum import Enum
from typing import Tuple


class HealStage(str, Enum):
    TRANSLATION = "translation/compile before execution"
    RUNTIME = "runtime execution after JS generation"


_CAUSES: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("ReferenceError",), "Undefined variable or symbol usage."),
    (
        ("TypeError",),
        "Invalid operation on value type (often null/undefined access).",
    ),
    (("SyntaxError",), "Generated JS contains invalid syntax."),
    (
        ("failed evaluating",),
        "Runtime engine rejected or failed while evaluating the generated "
        "script.",
    ),
    (
        ("OPENAI_API_KEY", "routing failed", "unavailable", "unreachable"),
        "Provider/config issue prevented translation.",
    ),
)
_GENERAL_CAUSE = (
    "General execution/translation failure; inspect exact error text."
)


def probable_cause(error_text: str) -> str:
    for needles, cause in _CAUSES:
        if any(needle in error_text for needle in needles):
            return cause
    return _GENERAL_CAUSE


def error_summary(error_text: str) -> str:
    """First non-empty line of ``error_text``."""

    for line in error_text.splitlines():
        stripped = line.strip()
        if stripped:
            return stripped
    return "unknown error"
