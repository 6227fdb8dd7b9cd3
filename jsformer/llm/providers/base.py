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

"""Base provider interfaces for translation backends."""

from __future__ import annotations

import os

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

from jsformer.prompting import TEMPLATE_TRANSLATE, PromptManager
from jsformer.types import Provider, TranslateRequest

SYSTEM_PROMPT = (
    "You convert arbitrary source text into executable JavaScript. "
    "Return code only."
)


class ProviderClient(Protocol):
    """Anything that can turn a translate request into raw model text."""

    def translate(self, request: TranslateRequest, model: str) -> str: ...


class ReachabilityProbe(Protocol):
    """Cheap liveness check with its own short timeout."""

    def is_reachable(self) -> bool: ...


@dataclass
class LLMResponse:
    """Standardized response from LLM providers."""

    content: str
    model: str
    provider: str


class BaseProvider(ABC):
    """Base class for all translation providers."""

    provider: Provider

    def __init__(self, *, prompt_manager: Optional[PromptManager] = None) -> None:
        self.client: Any | None = None
        self._prompt_manager = prompt_manager or PromptManager()
        self._initialize_client()

    @abstractmethod
    def _initialize_client(self) -> None:
        """Initialize the provider's client."""

    @abstractmethod
    def get_response(
        self,
        model_name: str,
        messages: List[Dict[str, str]],
        **kwargs: Any,
    ) -> LLMResponse:
        """Return a single response."""

    @property
    def name(self) -> str:
        return self.provider.value

    def build_messages(self, request: TranslateRequest) -> List[Dict[str, str]]:
        prompt = self._prompt_manager.render(
            TEMPLATE_TRANSLATE,
            source_text=request.source_text,
            source_id=request.source_id,
            language_hint=request.language_hint,
            scope_context=request.scope_context,
        )
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]

    def translate(self, request: TranslateRequest, model: str) -> str:
        """Return the raw model text for ``request``; may include fences."""

        response = self.get_response(model, self.build_messages(request))
        return response.content or ""

    def _get_api_key(self, env_var: str) -> Optional[str]:
        api_key = os.getenv(env_var)
        if api_key and api_key != "your-api-key-here":
            return api_key
        return None
