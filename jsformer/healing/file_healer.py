"""Whole-file self-heal: rewrite a failing script in place and re-run it."""

from __future__ import annotations

import logging
import shutil

from pathlib import Path
from typing import Callable, Optional

from jsformer.compiler import CompileCoordinator
from jsformer.constants import (
    DEFAULT_FILE_HEAL_ATTEMPTS,
    SELF_HEAL_BACKUP_SUFFIX,
    SELF_HEAL_KIND,
    SELF_HEAL_LANGUAGE_HINT,
    SELF_HEAL_SOURCE_SUFFIXES,
)
from jsformer.engine.base import JsEngine
from jsformer.exceptions import (
    ConfigurationError,
    JsformerError,
    NormalizationError,
    SelfHealError,
)
from jsformer.healing.loop import HealBudget, HealFailure, SelfHealLoop
from jsformer.languages import SourceKind
from jsformer.prompting import TEMPLATE_REPAIR_FILE, PromptManager
from jsformer.runtime import RunOptions, RunOutcome, run_file
from jsformer.types import CompileRequest, CompileResult

LOGGER = logging.getLogger(__name__)


def is_repairable(path: Path) -> bool:
    return path.suffix.lower() in SELF_HEAL_SOURCE_SUFFIXES


def backup_path_for(path: Path) -> Path:
    return path.with_name(path.name + SELF_HEAL_BACKUP_SUFFIX)


class FileSelfHealer(SelfHealLoop):
    """Runs ``path``; on failure asks the LLM for a full replacement file."""

    def __init__(
        self,
        compiler: CompileCoordinator,
        engine: JsEngine,
        options: RunOptions,
        *,
        max_attempts: int = DEFAULT_FILE_HEAL_ATTEMPTS,
        prompt_manager: Optional[PromptManager] = None,
        on_compiled: Optional[Callable[[CompileResult], None]] = None,
    ) -> None:
        if max_attempts < 1:
            raise ConfigurationError(
                "self-heal max attempts must be at least 1 for file runs"
            )
        super().__init__(
            HealBudget(max_attempts), prompt_manager=prompt_manager
        )
        self.compiler = compiler
        self.engine = engine
        self.options = options
        self.on_compiled = on_compiled
        self._path: Optional[Path] = None

    def run(self, path: Path) -> RunOutcome:
        if not is_repairable(path):
            try:
                return run_file(
                    self.engine,
                    self.compiler,
                    path,
                    self.options,
                    on_compiled=self.on_compiled,
                )
            except JsformerError as exc:
                raise SelfHealError(
                    f"failed running {path} (self-heal currently supports "
                    f"{'/'.join(SELF_HEAL_SOURCE_SUFFIXES)}): {exc}"
                ) from exc
        self._path = path
        return self._drive(str(path))

    def _execute(self, candidate: Optional[str]) -> RunOutcome:
        assert self._path is not None
        return run_file(
            self.engine,
            self.compiler,
            self._path,
            self.options,
            on_compiled=self.on_compiled,
        )

    def _repair(self, failure: HealFailure, attempt: int) -> Optional[str]:
        path = self._path
        assert path is not None
        try:
            current = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise SelfHealError(
                f"failed reading source for self-heal {path}: {exc}"
            ) from exc

        backup = backup_path_for(path)
        if not backup.exists():
            try:
                shutil.copyfile(path, backup)
            except OSError as exc:
                raise SelfHealError(
                    f"failed creating self-heal backup {path} -> {backup}: "
                    f"{exc}"
                ) from exc
            LOGGER.info("Backed up %s to %s", path, backup)

        prompt = self.prompt_manager.render(
            TEMPLATE_REPAIR_FILE,
            subject=str(path),
            user_input=current,
            **failure.prompt_fields(attempt),
        )
        repaired = self.compiler.compile(
            CompileRequest(
                source_text=prompt,
                source_id=f"{path}#self-heal-{attempt}",
                kind_hint=SourceKind.unknown(SELF_HEAL_KIND),
                language_hint=SELF_HEAL_LANGUAGE_HINT,
                force_llm=True,
                provider_selection=self.options.provider_selection,
                model_override=self.options.model_override,
                no_cache=True,
            )
        )
        if not repaired.javascript.strip():
            raise NormalizationError("self-heal generated empty output")
        try:
            path.write_text(repaired.javascript, encoding="utf-8")
        except OSError as exc:
            raise SelfHealError(
                f"failed writing healed file {path}: {exc}"
            ) from exc
        LOGGER.info("Self-heal wrote patch to %s", path)
        return None
