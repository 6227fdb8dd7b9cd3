"""Accumulated state of an interactive session."""

from __future__ import annotations

import json
import logging

from typing import Iterable, List, Optional, Set

from jsformer.constants import INTERNAL_GLOBAL_PREFIX, SESSION_HISTORY_LIMIT
from jsformer.engine.base import JsEngine

LOGGER = logging.getLogger(__name__)

_GLOBAL_NAMES_SCRIPT = "JSON.stringify(Object.getOwnPropertyNames(globalThis))"


def push_bounded(history: List[str], item: str, cap: int) -> None:
    """Append ``item``, evicting the oldest entries beyond ``cap``."""

    history.append(item)
    if cap <= 0:
        del history[:]
        return
    overflow = len(history) - cap
    if overflow > 0:
        del history[:overflow]


def sanitize_session_javascript(text: str) -> str:
    """Drop ES module syntax that cannot run as a plain script."""

    lines: List[str] = []
    for line in text.splitlines():
        stripped = line.lstrip()
        if stripped.startswith("export default "):
            lines.append(stripped[len("export default "):])
        elif stripped.startswith("export "):
            lines.append(stripped[len("export "):])
        elif not stripped.startswith("import "):
            lines.append(line)
    return "\n".join(lines).rstrip()


def read_global_names(engine: JsEngine) -> List[str]:
    output = engine.eval_script(_GLOBAL_NAMES_SCRIPT, "<repl-globals>")
    if not output.value:
        return []
    try:
        names = json.loads(output.value)
    except ValueError:
        LOGGER.debug("Could not parse global names: %r", output.value)
        return []
    return [name for name in names if isinstance(name, str)]


class SessionContext:
    """Bindings, bounded histories and a status line for prompt context."""

    def __init__(
        self,
        *,
        history_limit: int = SESSION_HISTORY_LIMIT,
        internal_prefix: str = INTERNAL_GLOBAL_PREFIX,
    ) -> None:
        self.history_limit = history_limit
        self.internal_prefix = internal_prefix
        self.baseline: Optional[Set[str]] = None
        self.bindings: List[str] = []
        self.statements: List[str] = []
        self.snippets: List[str] = []
        self.status: Optional[str] = None

    def capture_baseline(self, names: Iterable[str]) -> None:
        if self.baseline is None:
            self.baseline = set(names)

    def refresh_bindings(self, names: Iterable[str]) -> None:
        baseline = self.baseline or set()
        self.bindings = sorted(
            {
                name
                for name in names
                if name not in baseline
                and not name.startswith(self.internal_prefix)
            }
        )

    def set_status(self, text: Optional[str]) -> None:
        self.status = text or None

    def record_success(
        self,
        statement: str,
        javascript: str,
        global_names: Optional[Iterable[str]] = None,
    ) -> None:
        push_bounded(self.statements, statement, self.history_limit)
        push_bounded(self.snippets, javascript, self.history_limit)
        if global_names is not None:
            self.refresh_bindings(global_names)

    def build_scope_context(self) -> Optional[str]:
        sections: List[str] = []
        if self.bindings:
            sections.append(
                "Bindings currently defined in this session: "
                f"{', '.join(self.bindings)}. "
                "Avoid redeclaring them with const/let/class."
            )
        if self.statements:
            sections.append(
                _numbered(
                    "Previously run statements (oldest to newest):",
                    self.statements,
                )
            )
        if self.snippets:
            sections.append(
                _numbered(
                    "Previously generated JavaScript snippets "
                    "(oldest to newest):",
                    self.snippets,
                )
            )
        if self.status:
            sections.append(f"Current status: {self.status}")
        if not sections:
            return None
        return "\n\n".join(sections)


def _numbered(header: str, items: List[str]) -> str:
    lines = [header]
    for index, item in enumerate(items, start=1):
        lines.append(f"{index}. {item}")
    return "\n".join(lines)
