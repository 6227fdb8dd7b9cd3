"""Shared constants for the jsformer pipeline."""

from __future__ import annotations

from pathlib import Path

PROMPT_VERSION = "jsformer-v1"

PROVIDER_TAG_OLLAMA = "ollama"
PROVIDER_TAG_OPENAI = "openai-compatible"

DEFAULT_OLLAMA_URL = "http://127.0.0.1:11434"
DEFAULT_OLLAMA_MODEL = "qwen2.5-coder:7b"
DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_OPENAI_MODEL = "gpt-4.1-mini"
DEFAULT_OPENAI_API_KEY_ENV = "OPENAI_API_KEY"

PROBE_TIMEOUT_S = 2.0
OLLAMA_TIMEOUT_S = 30.0
OPENAI_TIMEOUT_S = 45.0
ENGINE_TIMEOUT_S = 30.0

DEFAULT_CACHE_ROOT = Path("~/.jsformer/cache/compile")
DEFAULT_CONFIG_FILENAME = "jsformer.yaml"

DEFAULT_FILE_HEAL_ATTEMPTS = 3
SESSION_HISTORY_LIMIT = 20
SESSION_DEFAULT_LANG = "pseudocode"
INTERNAL_GLOBAL_PREFIX = "__jsformer_"

SELF_HEAL_BACKUP_SUFFIX = ".jsformer.bak"
SELF_HEAL_SOURCE_SUFFIXES = (".js", ".mjs", ".cjs", ".jsx")
SELF_HEAL_KIND = "self-heal"
SELF_HEAL_LANGUAGE_HINT = "self-heal-javascript"

SESSION_SOURCE_ID = "<repl>"
