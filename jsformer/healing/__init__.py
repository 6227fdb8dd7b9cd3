"""Bounded self-heal loops for whole files and interactive sessions."""

from .diagnosis import HealStage, error_summary, probable_cause
from .file_healer import FileSelfHealer, backup_path_for, is_repairable
from .loop import HealBudget, HealFailure, HealState, SelfHealLoop
from .session_healer import SessionSelfHealer

__all__ = [
    "FileSelfHealer",
    "HealBudget",
    "HealFailure",
    "HealStage",
    "HealState",
    "SelfHealLoop",
    "SessionSelfHealer",
    "backup_path_for",
    "error_summary",
    "is_repairable",
    "probable_cause",
]
