"""Source classification for compile requests."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional


class SourceFamily(str, Enum):
    JAVASCRIPT = "javascript"
    TYPESCRIPT = "typescript"
    UNKNOWN = "unknown"
    AUTO = "auto"


SOURCE_ALIASES: Dict[str, SourceFamily] = {
    "js": SourceFamily.JAVASCRIPT,
    "mjs": SourceFamily.JAVASCRIPT,
    "cjs": SourceFamily.JAVASCRIPT,
    "javascript": SourceFamily.JAVASCRIPT,
    "ts": SourceFamily.TYPESCRIPT,
    "typescript": SourceFamily.TYPESCRIPT,
    "auto": SourceFamily.AUTO,
}


@dataclass(frozen=True)
class SourceKind:
    """Classification of input text; ``name`` is only set for unknown kinds."""

    family: SourceFamily
    name: Optional[str] = None

    @classmethod
    def javascript(cls) -> "SourceKind":
        return cls(SourceFamily.JAVASCRIPT)

    @classmethod
    def typescript(cls) -> "SourceKind":
        return cls(SourceFamily.TYPESCRIPT)

    @classmethod
    def auto(cls) -> "SourceKind":
        return cls(SourceFamily.AUTO)

    @classmethod
    def unknown(cls, name: str) -> "SourceKind":
        return cls(SourceFamily.UNKNOWN, name)

    @classmethod
    def from_hint(cls, hint: str) -> "SourceKind":
        """Map a language hint such as ``"ts"`` or ``"pseudo"`` to a kind."""

        normalized = hint.lower()
        family = SOURCE_ALIASES.get(normalized)
        if family is None:
            return cls.unknown(normalized)
        return cls(family)

    @classmethod
    def infer_from_source_id(cls, source_id: str) -> "SourceKind":
        """Classify by the text after the last ``.`` of a source identifier."""

        _, dot, extension = source_id.rpartition(".")
        if not dot:
            return cls.unknown("unknown")
        return cls.from_hint(extension)

    @property
    def is_javascript(self) -> bool:
        return self.family is SourceFamily.JAVASCRIPT

    @property
    def is_auto(self) -> bool:
        return self.family is SourceFamily.AUTO

    def as_hint(self) -> str:
        if self.family is SourceFamily.UNKNOWN:
            return self.name or "unknown"
        return self.family.value

    def __str__(self) -> str:
        return self.as_hint()


def resolve_kind(
    kind_hint: Optional[SourceKind], source_id: str
) -> SourceKind:
    """Use an explicit kind, falling back to the source id's extension."""

    if kind_hint is not None and not kind_hint.is_auto:
        return kind_hint
    return SourceKind.infer_from_source_id(source_id)


def needs_llm(kind: SourceKind, force_llm: bool) -> bool:
    """Only unforced JavaScript is passed through verbatim."""

    return force_llm or not kind.is_javascript


__all__ = [
    "SOURCE_ALIASES",
    "SourceFamily",
    "SourceKind",
    "needs_llm",
    "resolve_kind",
]
