"""Typed helpers for parsing jsformer configuration dictionaries."""

from __future__ import annotations

import os

from copy import deepcopy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from jsformer.constants import (
    DEFAULT_CACHE_ROOT,
    DEFAULT_CONFIG_FILENAME,
    DEFAULT_FILE_HEAL_ATTEMPTS,
    DEFAULT_OLLAMA_MODEL,
    DEFAULT_OLLAMA_URL,
    DEFAULT_OPENAI_API_KEY_ENV,
    DEFAULT_OPENAI_BASE_URL,
    DEFAULT_OPENAI_MODEL,
    ENGINE_TIMEOUT_S,
    OLLAMA_TIMEOUT_S,
    OPENAI_TIMEOUT_S,
    PROBE_TIMEOUT_S,
    SESSION_DEFAULT_LANG,
    SESSION_HISTORY_LIMIT,
)
from jsformer.exceptions import ConfigurationError
from jsformer.types import ProviderSelection

# (environment variable, config path, kind)
_ENV_OVERRIDES: Tuple[Tuple[str, Tuple[str, ...], str], ...] = (
    ("JSFORMER_PROVIDER", ("provider",), "str"),
    ("JSFORMER_OLLAMA_URL", ("llm", "ollama", "url"), "str"),
    ("JSFORMER_OLLAMA_MODEL", ("llm", "ollama", "model"), "str"),
    ("OPENAI_BASE_URL", ("llm", "openai", "base_url"), "str"),
    ("JSFORMER_MODEL", ("llm", "openai", "model"), "str"),
    ("JSFORMER_LANG", ("lang",), "str"),
    ("JSFORMER_FORCE_LLM", ("force_llm",), "bool"),
    ("JSFORMER_NO_CACHE", ("no_cache",), "bool"),
    ("JSFORMER_CACHE_DIR", ("cache", "root"), "path"),
    (
        "JSFORMER_SESSION_HEAL_MAX_ATTEMPTS",
        ("self_heal", "session_max_attempts"),
        "str",
    ),
)

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def _ensure_path(
    value: Optional[str | Path],
    *,
    config_root: Path,
    default: Path,
) -> Path:
    if value is None:
        return default.expanduser()
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = (config_root / path).resolve()
    return path


def _coerce_bool(value: Any, *, name: str) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigurationError(f"invalid boolean for {name}: {value!r}")


def _coerce_int(value: Any, *, name: str, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(
            f"invalid integer for {name}: {value!r}"
        ) from exc
    if number < 0:
        raise ConfigurationError(f"{name} must not be negative: {number}")
    return number


def _coerce_float(value: Any, *, name: str, default: float) -> float:
    if value is None:
        return default
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(
            f"invalid number for {name}: {value!r}"
        ) from exc
    if number <= 0:
        raise ConfigurationError(f"{name} must be positive: {number}")
    return number


def _set_path(
    target: Dict[str, Any], path: Tuple[str, ...], value: Any
) -> None:
    node = target
    for key in path[:-1]:
        child = node.get(key)
        if not isinstance(child, dict):
            child = {}
            node[key] = child
        node = child
    node[path[-1]] = value


def _deep_merge(
    base: Dict[str, Any], extra: Mapping[str, Any]
) -> Dict[str, Any]:
    for key, value in extra.items():
        current = base.get(key)
        if isinstance(value, Mapping) and isinstance(current, dict):
            _deep_merge(current, value)
        else:
            base[key] = deepcopy(value)
    return base


def apply_env_overrides(
    section: Dict[str, Any], environ: Mapping[str, str]
) -> Dict[str, Any]:
    """Overlay recognised environment variables onto a ``jsformer`` section."""

    for env_name, path, kind in _ENV_OVERRIDES:
        raw = environ.get(env_name)
        if raw is None or raw.strip() == "":
            continue
        value: Any = raw.strip()
        if kind == "bool":
            value = _coerce_bool(value, name=env_name)
        elif kind == "path":
            value = str(Path(value).expanduser().absolute())
        _set_path(section, path, value)
    return section


@dataclass(frozen=True)
class OllamaSettings:
    url: str = DEFAULT_OLLAMA_URL
    model: str = DEFAULT_OLLAMA_MODEL
    probe_timeout_s: float = PROBE_TIMEOUT_S
    timeout_s: float = OLLAMA_TIMEOUT_S


@dataclass(frozen=True)
class OpenAISettings:
    base_url: str = DEFAULT_OPENAI_BASE_URL
    model: str = DEFAULT_OPENAI_MODEL
    api_key_env: str = DEFAULT_OPENAI_API_KEY_ENV
    timeout_s: float = OPENAI_TIMEOUT_S


@dataclass(frozen=True)
class SelfHealSettings:
    enabled: bool = False
    max_attempts: int = DEFAULT_FILE_HEAL_ATTEMPTS
    # 0 means unlimited.
    session_max_attempts: int = 0


@dataclass(frozen=True)
class SessionSettings:
    lang: str = SESSION_DEFAULT_LANG
    history_limit: int = SESSION_HISTORY_LIMIT


@dataclass(frozen=True)
class EngineSettings:
    node_binary: str = "node"
    timeout_s: float = ENGINE_TIMEOUT_S


@dataclass(frozen=True)
class JsformerSettings:
    provider: ProviderSelection = ProviderSelection.AUTO
    lang: Optional[str] = None
    model: Optional[str] = None
    force_llm: bool = False
    no_cache: bool = False
    ollama: OllamaSettings = field(default_factory=OllamaSettings)
    openai: OpenAISettings = field(default_factory=OpenAISettings)
    cache_root: Path = field(
        default_factory=lambda: DEFAULT_CACHE_ROOT.expanduser()
    )
    self_heal: SelfHealSettings = field(default_factory=SelfHealSettings)
    session: SessionSettings = field(default_factory=SessionSettings)
    engine: EngineSettings = field(default_factory=EngineSettings)
    prompt_dirs: Tuple[Path, ...] = field(default_factory=tuple)


def build_settings(
    config: Dict[str, Any],
    *,
    config_root: Path,
    environ: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> JsformerSettings:
    """Resolve defaults < file < environment < ``overrides`` into settings."""

    section = deepcopy(config.get("jsformer") or {})
    if not isinstance(section, dict):
        raise ConfigurationError("'jsformer' config section must be a mapping")
    apply_env_overrides(section, os.environ if environ is None else environ)
    if overrides:
        _deep_merge(section, overrides)

    llm_cfg = section.get("llm") or {}
    ollama_cfg = llm_cfg.get("ollama") or {}
    openai_cfg = llm_cfg.get("openai") or {}
    ollama = OllamaSettings(
        url=str(ollama_cfg.get("url") or DEFAULT_OLLAMA_URL),
        model=str(ollama_cfg.get("model") or DEFAULT_OLLAMA_MODEL),
        probe_timeout_s=_coerce_float(
            ollama_cfg.get("probe_timeout_s"),
            name="llm.ollama.probe_timeout_s",
            default=PROBE_TIMEOUT_S,
        ),
        timeout_s=_coerce_float(
            ollama_cfg.get("timeout_s"),
            name="llm.ollama.timeout_s",
            default=OLLAMA_TIMEOUT_S,
        ),
    )
    openai = OpenAISettings(
        base_url=str(openai_cfg.get("base_url") or DEFAULT_OPENAI_BASE_URL),
        model=str(openai_cfg.get("model") or DEFAULT_OPENAI_MODEL),
        api_key_env=str(
            openai_cfg.get("api_key_env") or DEFAULT_OPENAI_API_KEY_ENV
        ),
        timeout_s=_coerce_float(
            openai_cfg.get("timeout_s"),
            name="llm.openai.timeout_s",
            default=OPENAI_TIMEOUT_S,
        ),
    )

    heal_cfg = section.get("self_heal") or {}
    self_heal = SelfHealSettings(
        enabled=_coerce_bool(
            heal_cfg.get("enabled", False), name="self_heal.enabled"
        ),
        max_attempts=_coerce_int(
            heal_cfg.get("max_attempts"),
            name="self_heal.max_attempts",
            default=DEFAULT_FILE_HEAL_ATTEMPTS,
        ),
        session_max_attempts=_coerce_int(
            heal_cfg.get("session_max_attempts"),
            name="self_heal.session_max_attempts",
            default=0,
        ),
    )

    session_cfg = section.get("session") or {}
    session = SessionSettings(
        lang=str(session_cfg.get("lang") or SESSION_DEFAULT_LANG),
        history_limit=_coerce_int(
            session_cfg.get("history_limit"),
            name="session.history_limit",
            default=SESSION_HISTORY_LIMIT,
        ),
    )

    engine_cfg = section.get("engine") or {}
    engine = EngineSettings(
        node_binary=str(engine_cfg.get("node_binary") or "node"),
        timeout_s=_coerce_float(
            engine_cfg.get("timeout_s"),
            name="engine.timeout_s",
            default=ENGINE_TIMEOUT_S,
        ),
    )

    cache_cfg = section.get("cache") or {}
    cache_root = _ensure_path(
        cache_cfg.get("root"),
        config_root=config_root,
        default=DEFAULT_CACHE_ROOT,
    )

    prompts_cfg = section.get("prompts") or {}
    override_dirs = prompts_cfg.get("override_dirs") or []
    if isinstance(override_dirs, (str, Path)):
        override_dirs = [override_dirs]
    prompt_dirs = tuple(
        _ensure_path(value, config_root=config_root, default=Path("."))
        for value in override_dirs
    )

    lang = section.get("lang")
    model = section.get("model")
    return JsformerSettings(
        provider=ProviderSelection.from_setting(
            str(section.get("provider") or "auto")
        ),
        lang=str(lang) if lang else None,
        model=str(model) if model else None,
        force_llm=_coerce_bool(section.get("force_llm"), name="force_llm"),
        no_cache=_coerce_bool(section.get("no_cache"), name="no_cache"),
        ollama=ollama,
        openai=openai,
        cache_root=cache_root,
        self_heal=self_heal,
        session=session,
        engine=engine,
        prompt_dirs=prompt_dirs,
    )


def load_config(config_path: Path) -> Dict[str, Any]:
    if not config_path.exists():
        raise FileNotFoundError(f"Config file '{config_path}' not found.")
    data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Config file '{config_path}' must contain a mapping"
        )
    return data


def resolve_config_path(
    explicit: Optional[str], *, cwd: Optional[Path] = None
) -> Optional[Path]:
    """Explicit path if given, else ``jsformer.yaml`` in ``cwd`` if present."""

    if explicit:
        return Path(explicit).expanduser()
    candidate = (cwd or Path.cwd()) / DEFAULT_CONFIG_FILENAME
    return candidate if candidate.exists() else None
