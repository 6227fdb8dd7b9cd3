"""Prompt templates and rendering."""

from .manager import (
    TEMPLATE_REPAIR_FILE,
    TEMPLATE_REPAIR_SESSION,
    TEMPLATE_TRANSLATE,
    PromptManager,
)

__all__ = [
    "PromptManager",
    "TEMPLATE_REPAIR_FILE",
    "TEMPLATE_REPAIR_SESSION",
    "TEMPLATE_TRANSLATE",
]
