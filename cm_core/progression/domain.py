# cm_core/progression/domain.py
"""
Plain value types exchanged between the progression engine and its repositories.

Snapshots are read-only views of persisted state; patches describe a single
write. None in a patch field means "leave unchanged".
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional, Tuple

from cm_core.pathways.rules import AutoAdvanceRule


@dataclass(frozen=True)
class StageSnapshot:
    id: Any
    pathway: str
    name: str
    order: int
    description: str = ""
    auto_advance_rule: Optional[AutoAdvanceRule] = None


@dataclass(frozen=True)
class AutomationRuleSnapshot:
    id: Any
    stage_id: Any
    task_description: str
    days_due: int
    priority: str
    enabled: bool = True


@dataclass(frozen=True)
class MemberSnapshot:
    id: Any
    pathway: str
    current_stage_id: Any
    status: str
    last_stage_change_date: Optional[datetime] = None
    assigned_to_id: Optional[int] = None
    notes: Tuple[str, ...] = ()


@dataclass(frozen=True)
class TaskSnapshot:
    id: Any
    member_id: Any
    description: str
    due_date: Optional[date]
    priority: str
    completed: bool = False
    completed_at: Optional[datetime] = None
    first_completed_at: Optional[datetime] = None
    assigned_to_id: Optional[int] = None
    automation_rule_id: Any = None


@dataclass(frozen=True)
class MemberPatch:
    current_stage_id: Any = None
    last_stage_change_date: Optional[datetime] = None
    status: Optional[str] = None
    note: Optional[str] = None

    @property
    def changes_fields(self) -> bool:
        return any(
            value is not None
            for value in (self.current_stage_id, self.last_stage_change_date, self.status)
        )


@dataclass(frozen=True)
class TaskPatch:
    completed: bool
    completed_at: Optional[datetime] = None


@dataclass(frozen=True)
class MemberFilter:
    pathway: Optional[str] = None
    exclude_statuses: Tuple[str, ...] = ()
    limit: Optional[int] = None
    # keyset paging: only members whose id sorts after this one
    after_id: Any = None


class Trigger(str, Enum):
    MANUAL = "MANUAL"
    TASK_COMPLETED = "TASK_COMPLETED"
    TIME_IN_STAGE = "TIME_IN_STAGE"


class EventKind(str, Enum):
    STAGE_ADVANCED = "stage_advanced"
    PATHWAY_COMPLETED = "pathway_completed"
    TASK_CREATED = "task_created"


@dataclass(frozen=True)
class ProgressionEvent:
    kind: EventKind
    trigger: Trigger
    member_id: Any
    occurred_at: datetime
    from_stage_id: Any = None
    to_stage_id: Any = None
    task_id: Any = None
    reason: str = ""


class Outcome(str, Enum):
    ADVANCED = "ADVANCED"
    COMPLETED = "COMPLETED"
    NOOP = "NOOP"
    CONFLICT = "CONFLICT"


@dataclass
class TransitionResult:
    outcome: Outcome
    member: Optional[MemberSnapshot]
    trigger: Trigger = Trigger.MANUAL
    from_stage_id: Any = None
    to_stage_id: Any = None
    reason: str = ""
    created_tasks: list = field(default_factory=list)
    failed_tasks: list = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.outcome in (Outcome.ADVANCED, Outcome.COMPLETED)


@dataclass
class TaskCompletion:
    task: TaskSnapshot
    transition: Optional[TransitionResult] = None
    # False when the task was already completed, so nothing was written
    changed: bool = False


@dataclass
class SweepReport:
    examined: int = 0
    advanced: int = 0
    completed: int = 0
    conflicts: int = 0
    skipped: int = 0
    errors: int = 0
    failed_tasks: int = 0
    interrupted: bool = False
    failed_member_ids: list = field(default_factory=list)
    # id of the last member examined when the pass stopped early; None once the whole set was covered
    resume_after: Any = None

    def record(self, result: TransitionResult) -> None:
        if result.outcome == Outcome.ADVANCED:
            self.advanced += 1
        elif result.outcome == Outcome.COMPLETED:
            self.completed += 1
        elif result.outcome == Outcome.CONFLICT:
            self.conflicts += 1
        self.failed_tasks += len(result.failed_tasks)

    def merge(self, other: "SweepReport") -> None:
        for name in ("examined", "advanced", "completed", "conflicts", "skipped", "errors", "failed_tasks"):
            setattr(self, name, getattr(self, name) + getattr(other, name))
        self.interrupted = self.interrupted or other.interrupted
        self.failed_member_ids.extend(other.failed_member_ids)
