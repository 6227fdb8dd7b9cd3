"""Content-addressed, file-backed cache of prior translations."""

from __future__ import annotations

import hashlib
import json
import logging

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

from jsformer.constants import PROMPT_VERSION
from jsformer.exceptions import CacheWriteError
from jsformer.types import CompileMetadata, CompileResult, Provider

LOGGER = logging.getLogger(__name__)

_KEY_FIELDS = (
    "source-id",
    "kind",
    "provider",
    "model",
    "prompt-version",
)


def cache_key(
    source_text: str,
    source_id: str,
    language_hint: str,
    provider: Provider,
    model: str,
    *,
    prompt_version: str = PROMPT_VERSION,
) -> str:
    """Return the sha256 digest identifying one translation."""

    hasher = hashlib.sha256()
    hasher.update(source_text.encode("utf-8"))
    values = (source_id, language_hint, provider.value, model, prompt_version)
    for label, value in zip(_KEY_FIELDS, values):
        hasher.update(f"\n--{label}--\n".encode("utf-8"))
        hasher.update(value.encode("utf-8"))
    return hasher.hexdigest()


class CompileCache(Protocol):
    def get(self, key: str) -> Optional[CompileResult]: ...

    def put(self, key: str, result: CompileResult) -> None: ...


@dataclass
class FileCompileCache:
    """Stores one JSON document per key; unreadable entries are misses."""

    root: Path

    def path_for(self, key: str) -> Path:
        return self.root / f"{key}.json"

    def get(self, key: str) -> Optional[CompileResult]:
        path = self.path_for(key)
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
            result = _result_from_payload(payload)
        except FileNotFoundError:
            return None
        except (OSError, ValueError, TypeError, KeyError) as exc:
            LOGGER.debug("Ignoring unreadable cache entry %s: %s", path, exc)
            return None
        LOGGER.debug("Cache hit %s", path)
        return result

    def put(self, key: str, result: CompileResult) -> None:
        path = self.path_for(key)
        metadata = result.metadata
        payload: Dict[str, Any] = {
            "javascript": result.javascript,
            "provider": metadata.provider.value if metadata.provider else None,
            "model": metadata.model,
            "prompt_version": metadata.prompt_version,
        }
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as exc:
            raise CacheWriteError(
                f"failed writing cache entry {path}: {exc}"
            ) from exc


def _result_from_payload(payload: Dict[str, Any]) -> CompileResult:
    javascript = payload["javascript"]
    prompt_version = payload["prompt_version"]
    if not isinstance(javascript, str) or not isinstance(prompt_version, str):
        raise TypeError("cache payload has non-string fields")
    provider_tag = payload.get("provider")
    model = payload.get("model")
    if model is not None and not isinstance(model, str):
        raise TypeError("cache payload model must be a string")
    return CompileResult(
        javascript=javascript,
        metadata=CompileMetadata(
            provider=Provider.from_tag(provider_tag) if provider_tag else None,
            model=model,
            prompt_version=prompt_version,
            cache_hit=True,
        ),
    )


__all__ = ["CompileCache", "FileCompileCache", "cache_key"]
