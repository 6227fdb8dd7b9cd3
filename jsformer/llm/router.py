"""Candidate chains, ordered provider fallback and output normalization."""

from __future__ import annotations

import logging

from typing import Dict, List, Optional, Sequence

from jsformer.exceptions import (
    NonRecoverableConfigError,
    NormalizationError,
    ProviderRoutingError,
)
from jsformer.llm.providers.base import ProviderClient, ReachabilityProbe
from jsformer.logging import redact
from jsformer.types import (
    Provider,
    ProviderAttempt,
    ProviderDescriptor,
    ProviderSelection,
    TranslateRequest,
    TranslateResponse,
)

LOGGER = logging.getLogger(__name__)

_FENCE = "```"


def normalize_js_output(raw: str) -> str:
    """Strip a markdown fence (if any) and reject empty output."""

    text = raw.strip()
    start = text.find(_FENCE)
    if start != -1:
        after = text[start + len(_FENCE):]
        newline = after.find("\n")
        if newline != -1:
            body = after[newline + 1:]
            end = body.find(_FENCE)
            if end != -1:
                code = body[:end].strip()
                if not code:
                    raise NormalizationError("LLM returned empty fenced output")
                return code
    if not text:
        raise NormalizationError("LLM returned empty output")
    return text


class ProviderRouter:
    """Tries each candidate once, in order, until one yields JavaScript."""

    def __init__(
        self,
        *,
        local: ProviderClient,
        cloud: ProviderClient,
        probe: ReachabilityProbe,
        local_model: str,
        cloud_model: str,
    ) -> None:
        self._clients: Dict[Provider, ProviderClient] = {
            Provider.OLLAMA: local,
            Provider.OPENAI_COMPATIBLE: cloud,
        }
        self._models: Dict[Provider, str] = {
            Provider.OLLAMA: local_model,
            Provider.OPENAI_COMPATIBLE: cloud_model,
        }
        self._probe = probe

    def candidate_chain(
        self, selection: ProviderSelection
    ) -> List[ProviderDescriptor]:
        local = ProviderDescriptor(
            Provider.OLLAMA, self._models[Provider.OLLAMA]
        )
        cloud = ProviderDescriptor(
            Provider.OPENAI_COMPATIBLE,
            self._models[Provider.OPENAI_COMPATIBLE],
        )
        if selection is ProviderSelection.OLLAMA:
            return [local]
        if selection is ProviderSelection.OPENAI_COMPATIBLE:
            return [cloud]
        if self._probe.is_reachable():
            return [local, cloud]
        LOGGER.info("Local model server unreachable; using hosted provider")
        return [cloud]

    def translate(
        self,
        selection: ProviderSelection,
        request: TranslateRequest,
        model_override: Optional[str] = None,
        *,
        candidates: Optional[Sequence[ProviderDescriptor]] = None,
    ) -> TranslateResponse:
        chain = (
            list(candidates)
            if candidates is not None
            else self.candidate_chain(selection)
        )
        attempts: List[ProviderAttempt] = []
        for candidate in chain:
            model = model_override or candidate.model
            client = self._clients[candidate.provider]
            LOGGER.info(
                "Translating %s with %s (%s)",
                request.source_id,
                candidate.provider.value,
                model,
            )
            try:
                javascript = normalize_js_output(
                    client.translate(request, model)
                )
            except Exception as exc:
                error = redact(str(exc))
                LOGGER.warning(
                    "Provider %s failed for %s: %s",
                    candidate.provider.value,
                    request.source_id,
                    error,
                )
                attempts.append(
                    ProviderAttempt(
                        provider=candidate.provider,
                        stage="translate",
                        error=error,
                        recoverable=not isinstance(
                            exc, NonRecoverableConfigError
                        ),
                    )
                )
                continue
            return TranslateResponse(
                javascript=javascript,
                provider=candidate.provider,
                model=model,
            )
        raise ProviderRoutingError(request.source_id, attempts)


__all__ = ["ProviderRouter", "normalize_js_output"]
