"""Engine interface used by the runtime and self-heal loops."""

from __future__ import annotations

from typing import Protocol

from jsformer.types import EvalOutput


class JsEngine(Protocol):
    """Evaluates a script in a context that persists between calls.

    Implementations raise ``EngineExecutionError`` with a message of the
    form ``failed evaluating {source_name}: {detail}``.
    """

    def eval_script(self, source: str, source_name: str) -> EvalOutput: ...
