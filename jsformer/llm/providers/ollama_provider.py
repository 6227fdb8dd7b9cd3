"""Local model server provider speaking the Ollama REST API."""

from __future__ import annotations

import logging

from typing import Any, Dict, List, Optional

import requests

from jsformer.constants import (
    DEFAULT_OLLAMA_URL,
    OLLAMA_TIMEOUT_S,
    PROBE_TIMEOUT_S,
)
from jsformer.exceptions import NonRecoverableConfigError, ProviderCallError
from jsformer.llm.providers.base import BaseProvider, LLMResponse
from jsformer.prompting import PromptManager
from jsformer.types import Provider

LOGGER = logging.getLogger(__name__)


class OllamaProvider(BaseProvider):
    """Uses ``/api/chat`` for translation and ``/api/tags`` as liveness probe."""

    provider = Provider.OLLAMA

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_OLLAMA_URL,
        timeout_s: float = OLLAMA_TIMEOUT_S,
        probe_timeout_s: float = PROBE_TIMEOUT_S,
        prompt_manager: Optional[PromptManager] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.probe_timeout_s = probe_timeout_s
        super().__init__(prompt_manager=prompt_manager)

    def _initialize_client(self) -> None:
        self.client = requests.Session()

    def is_reachable(self) -> bool:
        try:
            response = self.client.get(
                f"{self.base_url}/api/tags", timeout=self.probe_timeout_s
            )
        except requests.RequestException as exc:
            LOGGER.debug("Ollama probe at %s failed: %s", self.base_url, exc)
            return False
        return response.ok

    def get_response(
        self,
        model_name: str,
        messages: List[Dict[str, str]],
        **kwargs: Any,
    ) -> LLMResponse:
        payload: Dict[str, Any] = {
            "model": model_name,
            "messages": messages,
            "stream": False,
            "options": {"temperature": kwargs.get("temperature", 0.0)},
        }
        try:
            response = self.client.post(
                f"{self.base_url}/api/chat",
                json=payload,
                timeout=self.timeout_s,
            )
        except requests.Timeout as exc:
            raise ProviderCallError(
                f"Ollama request timed out after {self.timeout_s}s"
            ) from exc
        except requests.ConnectionError as exc:
            raise NonRecoverableConfigError(
                f"Ollama is unreachable at {self.base_url}: {exc}"
            ) from exc
        except requests.RequestException as exc:
            raise ProviderCallError(f"failed calling Ollama: {exc}") from exc

        if not response.ok:
            raise ProviderCallError(
                f"Ollama request failed ({response.status_code}): "
                f"{response.text}"
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderCallError(
                "failed to decode Ollama response"
            ) from exc
        message = data.get("message") or {}
        content = message.get("content", "")
        if not isinstance(content, str):
            raise ProviderCallError("Ollama response content was not text")
        return LLMResponse(
            content=content,
            model=model_name,
            provider=self.name,
        )
