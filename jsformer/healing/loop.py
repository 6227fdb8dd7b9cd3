"""State machine shared by the file and session self-heal flavors."""

from __future__ import annotations

import logging

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional

from jsformer.exceptions import (
    EngineExecutionError,
    JsformerError,
    SelfHealExhaustedError,
    is_non_recoverable,
)
from jsformer.healing.diagnosis import HealStage, error_summary, probable_cause
from jsformer.prompting import PromptManager

LOGGER = logging.getLogger(__name__)


class HealState(Enum):
    EXECUTING = "executing"
    DIAGNOSING = "diagnosing"
    REPAIRING = "repairing"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class HealBudget:
    """Ceiling on repair attempts; ``None`` or 0 means unlimited."""

    max_attempts: Optional[int] = None

    @property
    def unlimited(self) -> bool:
        return not self.max_attempts

    def exhausted(self, attempts: int) -> bool:
        if self.unlimited:
            return False
        return attempts >= int(self.max_attempts or 0)


@dataclass(frozen=True)
class HealFailure:
    """One failed execution or repair, embedded in the next repair prompt."""

    stage: HealStage
    error: str
    javascript: Optional[str] = None
    non_recoverable: bool = False
    repair_error: Optional[str] = None

    @classmethod
    def from_exception(
        cls, exc: JsformerError, javascript: Optional[str] = None
    ) -> "HealFailure":
        stage = (
            HealStage.RUNTIME
            if isinstance(exc, EngineExecutionError)
            else HealStage.TRANSLATION
        )
        return cls(
            stage=stage,
            error=str(exc),
            javascript=javascript if stage is HealStage.RUNTIME else None,
            non_recoverable=is_non_recoverable(exc),
        )

    def with_repair_error(self, error: str) -> "HealFailure":
        """Keep this failure as the subject of the next repair prompt."""

        return replace(self, repair_error=error)

    @property
    def detail(self) -> str:
        if not self.repair_error:
            return self.error
        return (
            f"{self.error}\n\nPrevious self-heal attempt failed: "
            f"{self.repair_error}"
        )

    def prompt_fields(self, attempt: int) -> dict[str, Any]:
        return {
            "attempt": attempt,
            "stage": self.stage.value,
            "error_summary": error_summary(self.error),
            "probable_cause": probable_cause(self.error),
            "error_text": self.detail,
            "previous_javascript": self.javascript,
        }


class SelfHealLoop(ABC):
    """Executing -> Diagnosing -> Repairing -> Executing ... until done.

    Subclasses provide ``_execute`` (run the current candidate) and
    ``_repair`` (produce the next candidate). The attempt counter covers
    both translation and runtime failures of one subject.
    """

    def __init__(
        self,
        budget: HealBudget,
        *,
        prompt_manager: Optional[PromptManager] = None,
    ) -> None:
        self.budget = budget
        self.prompt_manager = prompt_manager or PromptManager()
        self.state = HealState.SUCCEEDED
        self.attempts = 0

    @abstractmethod
    def _execute(self, candidate: Optional[str]) -> Any:
        """Run ``candidate``; raise ``JsformerError`` on failure."""

    @abstractmethod
    def _repair(self, failure: HealFailure, attempt: int) -> Optional[str]:
        """Return the next candidate; raise ``JsformerError`` on failure."""

    def _failed_javascript(self) -> Optional[str]:
        return None

    def _drive(self, subject: str, candidate: Optional[str] = None) -> Any:
        self.state = HealState.EXECUTING
        self.attempts = 0
        failure: Optional[HealFailure] = None
        while True:
            if self.state is HealState.EXECUTING:
                try:
                    result = self._execute(candidate)
                except JsformerError as exc:
                    failure = HealFailure.from_exception(
                        exc, self._failed_javascript()
                    )
                    LOGGER.warning(
                        "%s failed during %s: %s",
                        subject,
                        failure.stage.value,
                        error_summary(failure.error),
                    )
                    self.state = HealState.DIAGNOSING
                    continue
                self.state = HealState.SUCCEEDED
                if self.attempts:
                    LOGGER.info(
                        "%s succeeded after %d self-heal attempt(s)",
                        subject,
                        self.attempts,
                    )
                return result

            if self.state is HealState.DIAGNOSING:
                assert failure is not None
                if failure.non_recoverable or self.budget.exhausted(
                    self.attempts
                ):
                    self.state = HealState.EXHAUSTED
                    raise SelfHealExhaustedError(
                        subject,
                        self.attempts,
                        failure.detail,
                        non_recoverable=failure.non_recoverable,
                    )
                self.state = HealState.REPAIRING
                continue

            assert failure is not None
            self.attempts += 1
            LOGGER.info(
                "Self-heal attempt %d for %s (%s)",
                self.attempts,
                subject,
                probable_cause(failure.error),
            )
            try:
                candidate = self._repair(failure, self.attempts)
            except JsformerError as exc:
                repair_failure = HealFailure.from_exception(exc)
                LOGGER.warning(
                    "Self-heal attempt %d for %s failed: %s",
                    self.attempts,
                    subject,
                    error_summary(repair_failure.error),
                )
                if repair_failure.non_recoverable:
                    failure = repair_failure
                else:
                    failure = failure.with_repair_error(repair_failure.error)
                self.state = HealState.DIAGNOSING
                continue
            self.state = HealState.EXECUTING
