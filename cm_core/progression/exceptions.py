# cm_core/progression/exceptions.py
from __future__ import annotations

from typing import Any, Dict, Optional


class ProgressionError(Exception):
    code = "progression_error"

    def __init__(self, message: str = "", details: Optional[Dict[str, Any]] = None, *, code: Optional[str] = None):
        super().__init__(message or self.code)
        if code is not None:
            self.code = code
        self.details = details or {}


class ConfigurationError(ProgressionError):
    """The member's data contradicts the stage catalog."""

    code = "configuration_error"


class StageNotFound(ConfigurationError):
    code = "stage_not_found"


class PathwayMismatch(ConfigurationError):
    code = "pathway_mismatch"


class MemberNotFound(ProgressionError):
    code = "member_not_found"


class TaskNotFound(ProgressionError):
    code = "task_not_found"


class PersistenceError(ProgressionError):
    """A repository write or read failed; the unit of work was rolled back."""

    code = "persistence_error"
