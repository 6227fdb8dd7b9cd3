# Copyright (c) Meta Platforms, Inc. and affiliates.
# Modifications copyright (c) 2025 Logan Martel.
# Adapted from https://github.com/meta-pytorch/KernelAgent (Apache-2.0).
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""OpenAI-compatible hosted chat-completions provider."""

from __future__ import annotations

import logging

from typing import Any, Dict, List, Optional

import openai

from openai import OpenAI

from jsformer.constants import (
    DEFAULT_OPENAI_API_KEY_ENV,
    DEFAULT_OPENAI_BASE_URL,
    OPENAI_TIMEOUT_S,
)
from jsformer.exceptions import NonRecoverableConfigError, ProviderCallError
from jsformer.llm.providers.base import BaseProvider, LLMResponse
from jsformer.prompting import PromptManager
from jsformer.types import Provider

LOGGER = logging.getLogger(__name__)


class OpenAICompatibleProvider(BaseProvider):
    """Provider for OpenAI-compatible chat APIs (credentialed)."""

    provider = Provider.OPENAI_COMPATIBLE

    def __init__(
        self,
        *,
        api_key_env: str = DEFAULT_OPENAI_API_KEY_ENV,
        base_url: str = DEFAULT_OPENAI_BASE_URL,
        timeout_s: float = OPENAI_TIMEOUT_S,
        prompt_manager: Optional[PromptManager] = None,
    ) -> None:
        self.api_key_env = api_key_env
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        super().__init__(prompt_manager=prompt_manager)

    def _initialize_client(self) -> None:
        api_key = self._get_api_key(self.api_key_env)
        if not api_key:
            return
        # The router owns fallback; the SDK must not retry on its own.
        self.client = OpenAI(
            api_key=api_key,
            base_url=self.base_url,
            timeout=self.timeout_s,
            max_retries=0,
        )

    def get_response(
        self,
        model_name: str,
        messages: List[Dict[str, str]],
        **kwargs: Any,
    ) -> LLMResponse:
        client = self.client
        if client is None:
            raise NonRecoverableConfigError(
                f"{self.api_key_env} is required for OpenAI-compatible "
                "translation"
            )
        params: Dict[str, Any] = {
            "model": model_name,
            "messages": messages,
            "temperature": kwargs.get("temperature", 0.0),
        }
        try:
            response = client.chat.completions.create(**params)
        except openai.APITimeoutError as exc:
            raise ProviderCallError(
                f"OpenAI-compatible request timed out after {self.timeout_s}s"
            ) from exc
        except (
            openai.AuthenticationError,
            openai.PermissionDeniedError,
            openai.APIConnectionError,
        ) as exc:
            raise NonRecoverableConfigError(
                f"OpenAI-compatible endpoint {self.base_url} rejected or "
                f"refused the request: {exc}"
            ) from exc
        except openai.OpenAIError as exc:
            raise ProviderCallError(
                f"OpenAI-compatible request failed: {exc}"
            ) from exc
        LOGGER.debug(
            "OpenAI-compatible response id=%s", getattr(response, "id", None)
        )
        if not response.choices:
            raise ProviderCallError(
                "OpenAI-compatible response had no choices"
            )
        return LLMResponse(
            content=response.choices[0].message.content or "",
            model=model_name,
            provider=self.name,
        )
