# cm_core/progression/interfaces.py
"""
Collaborator contracts of the progression engine.

The Django adapters live in `cm_core.progression.repositories`; tests use
in-memory fakes.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Iterable, Optional, Protocol

from cm_core.automation.evaluator import TaskDraft
from cm_core.progression.domain import (
    AutomationRuleSnapshot,
    MemberFilter,
    MemberPatch,
    MemberSnapshot,
    ProgressionEvent,
    StageSnapshot,
    TaskPatch,
    TaskSnapshot,
)


class MemberRepository(Protocol):
    def get(self, member_id: Any) -> MemberSnapshot:
        """Raises MemberNotFound."""

    def list(self, member_filter: MemberFilter) -> Iterable[MemberSnapshot]:
        """Members in ascending id order, starting after `member_filter.after_id`."""

    def update(
        self,
        member_id: Any,
        patch: MemberPatch,
        *,
        expected_stage_id: Any = None,
        expected_status: Optional[str] = None,
    ) -> Optional[MemberSnapshot]:
        """
        Applies the patch only while the stored stage (and status) still match the
        expectations. Returns the post-write state, or None when the guard failed.
        A note in the patch is prepended to the member's notes.
        """


class TaskRepository(Protocol):
    def get(self, task_id: Any) -> TaskSnapshot:
        """Raises TaskNotFound."""

    def create(self, draft: TaskDraft) -> TaskSnapshot:
        ...

    def update(
        self,
        task_id: Any,
        patch: TaskPatch,
        *,
        expected_completed: Optional[bool] = None,
    ) -> Optional[TaskSnapshot]:
        """
        Applies the patch only while the stored `completed` flag still equals
        `expected_completed`. Returns None when the guard failed. Raises TaskNotFound.
        """

    def claim_first_completion(self, task_id: Any, at: datetime) -> bool:
        """
        Records `at` as the task's first completion unless one is already recorded.
        True only for the call that recorded it; reopening never clears it.
        """


class StageCatalog(Protocol):
    def stages_for(self, pathway: str) -> list[StageSnapshot]:
        """Stages of one pathway in ascending order."""


class AutomationRuleSet(Protocol):
    def rules_for(self, stage_id: Any) -> list[AutomationRuleSnapshot]:
        """Rules targeting a stage in insertion order."""


class Clock(Protocol):
    def now(self) -> datetime:
        ...

    def today(self) -> date:
        ...


class NotificationSink(Protocol):
    def __call__(self, member: MemberSnapshot, event: ProgressionEvent) -> None:
        ...
