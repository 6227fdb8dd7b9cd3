"""Compile-then-execute helpers for whole files."""

from __future__ import annotations

import logging

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from jsformer.compiler import CompileCoordinator
from jsformer.engine.base import JsEngine
from jsformer.exceptions import JsformerError
from jsformer.languages import SourceKind
from jsformer.types import (
    CompileRequest,
    CompileResult,
    EvalOutput,
    ProviderSelection,
)

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunOptions:
    kind_hint: Optional[SourceKind] = None
    language_hint: Optional[str] = None
    force_llm: bool = False
    no_cache: bool = False
    provider_selection: ProviderSelection = ProviderSelection.AUTO
    model_override: Optional[str] = None

    @classmethod
    def from_lang(cls, lang: Optional[str], **kwargs) -> "RunOptions":
        """Use ``lang`` both as the kind hint and the provider language hint."""

        if not lang:
            return cls(**kwargs)
        return cls(
            kind_hint=SourceKind.from_hint(lang),
            language_hint=lang,
            **kwargs,
        )


@dataclass(frozen=True)
class RunOutcome:
    compile: CompileResult
    eval: EvalOutput


def run_file(
    engine: JsEngine,
    compiler: CompileCoordinator,
    path: Path,
    options: RunOptions,
    *,
    on_compiled: Optional[Callable[[CompileResult], None]] = None,
) -> RunOutcome:
    """Read ``path``, compile it to JavaScript and evaluate the result."""

    LOGGER.debug("Loading source %s", path)
    try:
        source = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise JsformerError(f"failed reading script file {path}: {exc}") from exc

    compiled = compiler.compile(
        CompileRequest(
            source_text=source,
            source_id=str(path),
            kind_hint=options.kind_hint,
            language_hint=options.language_hint,
            force_llm=options.force_llm,
            provider_selection=options.provider_selection,
            model_override=options.model_override,
            no_cache=options.no_cache,
        )
    )
    metadata = compiled.metadata
    LOGGER.debug(
        "Compiled %s provider=%s model=%s cache_hit=%s",
        path,
        metadata.provider.value if metadata.provider else None,
        metadata.model,
        metadata.cache_hit,
    )
    if on_compiled is not None:
        on_compiled(compiled)
    output = engine.eval_script(compiled.javascript, str(path))
    return RunOutcome(compile=compiled, eval=output)
