"""Custom exceptions for the compile-and-repair pipeline."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Sequence, Tuple

if TYPE_CHECKING:  # pragma: no cover
    from jsformer.types import ProviderAttempt


class JsformerError(RuntimeError):
    """Base exception for pipeline failures."""


class ConfigurationError(JsformerError):
    """Raised when settings contain invalid values."""


class ProviderCallError(JsformerError):
    """Raised when a single provider call fails."""


class NormalizationError(ProviderCallError):
    """Raised when a provider returns empty or degenerate output."""


class NonRecoverableConfigError(ProviderCallError):
    """Raised for missing credentials or an unreachable provider service."""


class ProviderRoutingError(JsformerError):
    """Raised when every candidate in a provider chain failed."""

    def __init__(
        self,
        source_id: str,
        attempts: Sequence["ProviderAttempt"],
    ) -> None:
        self.source_id = source_id
        self.attempts: Tuple["ProviderAttempt", ...] = tuple(attempts)
        if self.attempts:
            detail = "; ".join(
                f"{attempt.provider.value} ({attempt.stage}): {attempt.error}"
                for attempt in self.attempts
            )
        else:
            detail = "no provider candidates available"
        super().__init__(
            f"LLM routing failed for {source_id} after "
            f"{len(self.attempts)} attempt(s): {detail}"
        )

    @property
    def non_recoverable(self) -> bool:
        return any(not attempt.recoverable for attempt in self.attempts)


class CacheWriteError(JsformerError):
    """Raised when a compile cache entry cannot be written."""


class EngineExecutionError(JsformerError):
    """Raised when the JavaScript engine fails to evaluate a script."""


class SelfHealError(JsformerError):
    """Raised when self-heal cannot be applied to a failure."""


class SelfHealExhaustedError(SelfHealError):
    """Raised when the self-heal loop ends without a successful run."""

    def __init__(
        self,
        subject: str,
        attempts: int,
        last_error: str,
        *,
        non_recoverable: bool = False,
    ) -> None:
        self.subject = subject
        self.attempts = attempts
        self.last_error = last_error
        self.non_recoverable = non_recoverable
        if non_recoverable:
            message = (
                f"self-heal stopped for {subject} after {attempts} attempt(s) "
                f"on a non-recoverable provider failure: {last_error}"
            )
        else:
            message = (
                f"failed running {subject} after {attempts} self-heal "
                f"attempt(s): {last_error}"
            )
        super().__init__(message)


def is_non_recoverable(exc: Optional[BaseException]) -> bool:
    """Whether ``exc`` is a provider/credential failure repair cannot fix."""

    if isinstance(exc, NonRecoverableConfigError):
        return True
    if isinstance(exc, ProviderRoutingError):
        return exc.non_recoverable
    return False
