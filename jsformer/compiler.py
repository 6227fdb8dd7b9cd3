"""Turns a compile request into JavaScript, using the cache when allowed."""

from __future__ import annotations

import logging

from typing import Optional

from jsformer.cache import CompileCache, cache_key
from jsformer.languages import needs_llm, resolve_kind
from jsformer.llm.router import ProviderRouter
from jsformer.types import (
    CompileMetadata,
    CompileRequest,
    CompileResult,
    TranslateRequest,
)

LOGGER = logging.getLogger(__name__)


class CompileCoordinator:
    """Classify, look up the cache across the chain, translate, write back.

    Routing failures propagate unchanged. Nothing is written to the cache
    unless a provider answered successfully.
    """

    def __init__(
        self,
        router: ProviderRouter,
        cache: Optional[CompileCache] = None,
    ) -> None:
        self.router = router
        self.cache = cache

    def compile(self, request: CompileRequest) -> CompileResult:
        kind = resolve_kind(request.kind_hint, request.source_id)
        language_hint = request.language_hint or kind.as_hint()

        if not needs_llm(kind, request.force_llm):
            return CompileResult(
                javascript=request.source_text,
                metadata=CompileMetadata(),
            )

        cache = None if request.no_cache else self.cache
        candidates = self.router.candidate_chain(request.provider_selection)

        if cache is not None:
            for candidate in candidates:
                model = request.model_override or candidate.model
                key = cache_key(
                    request.source_text,
                    request.source_id,
                    language_hint,
                    candidate.provider,
                    model,
                )
                hit = cache.get(key)
                if hit is not None:
                    LOGGER.debug(
                        "Cache hit for %s via %s (%s)",
                        request.source_id,
                        candidate.provider.value,
                        model,
                    )
                    return hit
            LOGGER.debug("Cache miss for %s", request.source_id)

        response = self.router.translate(
            request.provider_selection,
            TranslateRequest(
                source_text=request.source_text,
                source_id=request.source_id,
                language_hint=language_hint,
                scope_context=request.scope_context,
            ),
            request.model_override,
            candidates=candidates,
        )
        result = CompileResult(
            javascript=response.javascript,
            metadata=CompileMetadata(
                provider=response.provider,
                model=response.model,
            ),
        )
        if cache is not None:
            cache.put(
                cache_key(
                    request.source_text,
                    request.source_id,
                    language_hint,
                    response.provider,
                    response.model,
                ),
                result,
            )
        return result
