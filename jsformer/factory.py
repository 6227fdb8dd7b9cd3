"""Builds pipeline components from resolved settings."""

from __future__ import annotations

from typing import Callable, Optional, Tuple

from jsformer.cache import FileCompileCache
from jsformer.compiler import CompileCoordinator
from jsformer.configuration import JsformerSettings
from jsformer.engine.base import JsEngine
from jsformer.engine.node import NodeEngine
from jsformer.healing import FileSelfHealer, HealBudget, SessionSelfHealer
from jsformer.llm.providers import OllamaProvider, OpenAICompatibleProvider
from jsformer.llm.router import ProviderRouter
from jsformer.prompting import PromptManager
from jsformer.runtime import RunOptions
from jsformer.session import SessionContext
from jsformer.types import CompileResult


def build_prompt_manager(settings: JsformerSettings) -> PromptManager:
    return PromptManager(extra_dirs=settings.prompt_dirs)


def build_providers(
    settings: JsformerSettings, prompt_manager: PromptManager
) -> Tuple[OllamaProvider, OpenAICompatibleProvider]:
    local = OllamaProvider(
        base_url=settings.ollama.url,
        timeout_s=settings.ollama.timeout_s,
        probe_timeout_s=settings.ollama.probe_timeout_s,
        prompt_manager=prompt_manager,
    )
    cloud = OpenAICompatibleProvider(
        api_key_env=settings.openai.api_key_env,
        base_url=settings.openai.base_url,
        timeout_s=settings.openai.timeout_s,
        prompt_manager=prompt_manager,
    )
    return local, cloud


def build_router(
    settings: JsformerSettings,
    *,
    prompt_manager: Optional[PromptManager] = None,
) -> ProviderRouter:
    local, cloud = build_providers(
        settings, prompt_manager or build_prompt_manager(settings)
    )
    return ProviderRouter(
        local=local,
        cloud=cloud,
        probe=local,
        local_model=settings.ollama.model,
        cloud_model=settings.openai.model,
    )


def build_compiler(
    settings: JsformerSettings,
    *,
    router: Optional[ProviderRouter] = None,
    prompt_manager: Optional[PromptManager] = None,
) -> CompileCoordinator:
    return CompileCoordinator(
        router or build_router(settings, prompt_manager=prompt_manager),
        FileCompileCache(settings.cache_root),
    )


def build_engine(settings: JsformerSettings) -> NodeEngine:
    return NodeEngine(
        node_binary=settings.engine.node_binary,
        timeout_s=settings.engine.timeout_s,
    )


def build_run_options(settings: JsformerSettings) -> RunOptions:
    return RunOptions.from_lang(
        settings.lang,
        force_llm=settings.force_llm,
        no_cache=settings.no_cache,
        provider_selection=settings.provider,
        model_override=settings.model,
    )


def build_file_healer(
    settings: JsformerSettings,
    compiler: CompileCoordinator,
    engine: JsEngine,
    *,
    prompt_manager: Optional[PromptManager] = None,
    on_compiled: Optional[Callable[[CompileResult], None]] = None,
) -> FileSelfHealer:
    return FileSelfHealer(
        compiler,
        engine,
        build_run_options(settings),
        max_attempts=settings.self_heal.max_attempts,
        prompt_manager=prompt_manager or build_prompt_manager(settings),
        on_compiled=on_compiled,
    )


def build_session_healer(
    settings: JsformerSettings,
    compiler: CompileCoordinator,
    engine: JsEngine,
    *,
    prompt_manager: Optional[PromptManager] = None,
) -> SessionSelfHealer:
    return SessionSelfHealer(
        compiler,
        engine,
        SessionContext(history_limit=settings.session.history_limit),
        lang=settings.session.lang,
        provider_selection=settings.provider,
        model_override=settings.model,
        no_cache=settings.no_cache,
        budget=HealBudget(settings.self_heal.session_max_attempts),
        prompt_manager=prompt_manager or build_prompt_manager(settings),
    )
