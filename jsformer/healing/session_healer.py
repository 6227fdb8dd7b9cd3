"""Interactive self-heal: translate, run and repair one statement at a time."""

from __future__ import annotations

import logging

from typing import Optional

from jsformer.compiler import CompileCoordinator
from jsformer.constants import SESSION_DEFAULT_LANG, SESSION_SOURCE_ID
from jsformer.engine.base import JsEngine
from jsformer.exceptions import NormalizationError
from jsformer.healing.loop import HealBudget, HealFailure, SelfHealLoop
from jsformer.languages import SourceKind
from jsformer.prompting import TEMPLATE_REPAIR_SESSION, PromptManager
from jsformer.session import (
    SessionContext,
    read_global_names,
    sanitize_session_javascript,
)
from jsformer.types import CompileRequest, EvalOutput, ProviderSelection

LOGGER = logging.getLogger(__name__)


class SessionSelfHealer(SelfHealLoop):
    """Runs statements against a persistent engine and session context.

    The session is only updated after a statement executes successfully;
    a failed or exhausted statement leaves it untouched.
    """

    def __init__(
        self,
        compiler: CompileCoordinator,
        engine: JsEngine,
        session: SessionContext,
        *,
        lang: str = SESSION_DEFAULT_LANG,
        provider_selection: ProviderSelection = ProviderSelection.AUTO,
        model_override: Optional[str] = None,
        no_cache: bool = False,
        budget: Optional[HealBudget] = None,
        prompt_manager: Optional[PromptManager] = None,
    ) -> None:
        super().__init__(budget or HealBudget(), prompt_manager=prompt_manager)
        self.compiler = compiler
        self.engine = engine
        self.session = session
        self.lang = lang
        self.provider_selection = provider_selection
        self.model_override = model_override
        self.no_cache = no_cache
        self._statement = ""
        self._javascript: Optional[str] = None

    def start(self) -> None:
        self.session.capture_baseline(read_global_names(self.engine))

    def execute(self, statement: str) -> EvalOutput:
        self._statement = statement
        self._javascript = None
        output = self._drive(SESSION_SOURCE_ID)
        assert self._javascript is not None
        self.session.record_success(
            statement, self._javascript, read_global_names(self.engine)
        )
        return output

    def _compile(
        self, source_text: str, source_id: str, *, no_cache: bool
    ) -> str:
        compiled = self.compiler.compile(
            CompileRequest(
                source_text=source_text,
                source_id=source_id,
                kind_hint=SourceKind.unknown(self.lang),
                language_hint=self.lang,
                scope_context=self.session.build_scope_context(),
                force_llm=True,
                provider_selection=self.provider_selection,
                model_override=self.model_override,
                no_cache=no_cache,
            )
        )
        javascript = sanitize_session_javascript(compiled.javascript)
        if not javascript.strip():
            raise NormalizationError(
                f"{source_id} generated empty JavaScript after module-syntax "
                "cleanup"
            )
        return javascript

    def _execute(self, candidate: Optional[str]) -> EvalOutput:
        if candidate is None:
            candidate = self._compile(
                self._statement, SESSION_SOURCE_ID, no_cache=self.no_cache
            )
        self._javascript = candidate
        return self.engine.eval_script(candidate, SESSION_SOURCE_ID)

    def _failed_javascript(self) -> Optional[str]:
        return self._javascript

    def _repair(self, failure: HealFailure, attempt: int) -> Optional[str]:
        prompt = self.prompt_manager.render(
            TEMPLATE_REPAIR_SESSION,
            user_input=self._statement,
            **failure.prompt_fields(attempt),
        )
        return self._compile(
            prompt, f"<repl-self-heal-{attempt}>", no_cache=True
        )
