"""Core dataclasses used throughout the jsformer pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from jsformer.constants import (
    PROMPT_VERSION,
    PROVIDER_TAG_OLLAMA,
    PROVIDER_TAG_OPENAI,
)
from jsformer.exceptions import ConfigurationError
from jsformer.languages import SourceKind


class Provider(str, Enum):
    """Translation backends known to the router."""

    OLLAMA = PROVIDER_TAG_OLLAMA
    OPENAI_COMPATIBLE = PROVIDER_TAG_OPENAI

    @classmethod
    def from_tag(cls, tag: str) -> "Provider":
        return cls(tag)


class ProviderSelection(str, Enum):
    """How the router picks candidates for a translation."""

    AUTO = "auto"
    OLLAMA = PROVIDER_TAG_OLLAMA
    OPENAI_COMPATIBLE = PROVIDER_TAG_OPENAI

    @classmethod
    def from_setting(cls, value: str) -> "ProviderSelection":
        normalized = value.strip().lower()
        if normalized in {"openai", PROVIDER_TAG_OPENAI}:
            return cls.OPENAI_COMPATIBLE
        try:
            return cls(normalized)
        except ValueError as exc:
            raise ConfigurationError(
                f"unknown provider '{value}'. Supported: auto, ollama, openai"
            ) from exc


@dataclass(frozen=True)
class ProviderDescriptor:
    """One (provider, model) candidate in a fallback chain."""

    provider: Provider
    model: str


@dataclass(frozen=True)
class TranslateRequest:
    """Provider-facing description of text to translate."""

    source_text: str
    source_id: str
    language_hint: Optional[str] = None
    scope_context: Optional[str] = None


@dataclass(frozen=True)
class TranslateResponse:
    javascript: str
    provider: Provider
    model: str


@dataclass(frozen=True)
class ProviderAttempt:
    """A failed call against one candidate."""

    provider: Provider
    stage: str
    error: str
    recoverable: bool = True


@dataclass(frozen=True)
class CompileRequest:
    """Everything the compiler needs to produce JavaScript for a source."""

    source_text: str
    source_id: str
    kind_hint: Optional[SourceKind] = None
    language_hint: Optional[str] = None
    scope_context: Optional[str] = None
    force_llm: bool = False
    provider_selection: ProviderSelection = ProviderSelection.AUTO
    model_override: Optional[str] = None
    no_cache: bool = False


@dataclass(frozen=True)
class CompileMetadata:
    provider: Optional[Provider] = None
    model: Optional[str] = None
    prompt_version: str = PROMPT_VERSION
    cache_hit: bool = False


@dataclass(frozen=True)
class CompileResult:
    """Produced JavaScript plus how it was produced."""

    javascript: str
    metadata: CompileMetadata = field(default_factory=CompileMetadata)


@dataclass(frozen=True)
class EvalOutput:
    """Result of evaluating a script in a JavaScript engine."""

    value: Optional[str] = None
    diagnostics: List[str] = field(default_factory=list)
    console: List[str] = field(default_factory=list)
