"""jsformer package entry point."""

from .compiler import CompileCoordinator
from .exceptions import (
    JsformerError,
    ProviderRoutingError,
    SelfHealExhaustedError,
)
from .languages import SourceKind
from .types import (
    CompileMetadata,
    CompileRequest,
    CompileResult,
    EvalOutput,
    Provider,
    ProviderSelection,
)

__all__ = [
    "CompileCoordinator",
    "CompileMetadata",
    "CompileRequest",
    "CompileResult",
    "EvalOutput",
    "JsformerError",
    "Provider",
    "ProviderRoutingError",
    "ProviderSelection",
    "SelfHealExhaustedError",
    "SourceKind",
]
