# cm_core/progression/tests/fakes.py
"""
In-memory collaborators for exercising ProgressionEngine without a database.
"""
from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Callable, Optional

from cm_core.automation.evaluator import TaskDraft
from cm_core.common.clock import FixedClock
from cm_core.members.constants import MemberStatus
from cm_core.pathways.constants import Pathway
from cm_core.pathways.rules import AutoAdvanceRule
from cm_core.progression.domain import (
    AutomationRuleSnapshot,
    MemberFilter,
    MemberPatch,
    MemberSnapshot,
    StageSnapshot,
    TaskPatch,
    TaskSnapshot,
)
from cm_core.progression.engine import ProgressionEngine
from cm_core.progression.exceptions import MemberNotFound, PersistenceError, TaskNotFound
from cm_core.tasks.constants import TaskPriority

NEWCOMER_NAMES = ["Sunday Exp", "Tent", "Lunch", "Social", "Connect Grp", "Growth Track", "Serve"]


def newcomer_stages(rules: Optional[dict[str, AutoAdvanceRule]] = None) -> list[StageSnapshot]:
    """nc1..nc7; `rules` maps a stage id to its auto-advance rule."""
    rules = rules or {}
    return [
        StageSnapshot(
            id=f"nc{i}",
            pathway=Pathway.NEWCOMER,
            name=name,
            order=i,
            auto_advance_rule=rules.get(f"nc{i}"),
        )
        for i, name in enumerate(NEWCOMER_NAMES, start=1)
    ]


class InMemoryMembers:
    def __init__(self):
        self.rows: dict = {}
        self.failing_ids: set = set()
        # runs once right before the next guarded update (simulates a concurrent writer)
        self.interleave: Optional[Callable[[], None]] = None

    def add(self, member: MemberSnapshot) -> MemberSnapshot:
        self.rows[member.id] = member
        return member

    def get(self, member_id) -> MemberSnapshot:
        try:
            return self.rows[member_id]
        except KeyError:
            raise MemberNotFound(f"Member {member_id} not found")

    def list(self, member_filter: MemberFilter):
        rows = sorted(
            (
                m
                for m in self.rows.values()
                if m.status not in member_filter.exclude_statuses
                and (member_filter.pathway is None or m.pathway == member_filter.pathway)
                and (member_filter.after_id is None or str(m.id) > str(member_filter.after_id))
            ),
            key=lambda m: str(m.id),
        )
        if member_filter.limit is not None:
            rows = rows[: member_filter.limit]
        return iter(rows)

    def update(self, member_id, patch: MemberPatch, *, expected_stage_id=None, expected_status=None):
        if member_id in self.failing_ids:
            raise PersistenceError(f"could not write member {member_id}")

        if self.interleave is not None and expected_stage_id is not None:
            interleave, self.interleave = self.interleave, None
            interleave()

        current = self.get(member_id)
        if expected_stage_id is not None and current.current_stage_id != expected_stage_id:
            return None
        if expected_status is not None and current.status != expected_status:
            return None

        changes = {}
        if patch.current_stage_id is not None:
            changes["current_stage_id"] = patch.current_stage_id
        if patch.last_stage_change_date is not None:
            changes["last_stage_change_date"] = patch.last_stage_change_date
        if patch.status is not None:
            changes["status"] = patch.status
        if patch.note:
            changes["notes"] = (patch.note,) + current.notes

        updated = replace(current, **changes)
        self.rows[member_id] = updated
        return updated


class InMemoryTasks:
    def __init__(self):
        self.rows: dict = {}
        self.failing_descriptions: set[str] = set()
        self._seq = 0
        # runs once right before the next guarded update (simulates a concurrent writer)
        self.interleave: Optional[Callable[[], None]] = None

    def add(self, member_id, description: str, *, completed: bool = False) -> TaskSnapshot:
        self._seq += 1
        task = TaskSnapshot(
            id=f"t{self._seq}",
            member_id=member_id,
            description=description,
            due_date=None,
            priority=TaskPriority.MEDIUM,
            completed=completed,
            first_completed_at=datetime(2024, 1, 1) if completed else None,
        )
        self.rows[task.id] = task
        return task

    def get(self, task_id) -> TaskSnapshot:
        try:
            return self.rows[task_id]
        except KeyError:
            raise TaskNotFound(f"Task {task_id} not found")

    def create(self, draft: TaskDraft) -> TaskSnapshot:
        if draft.description in self.failing_descriptions:
            raise PersistenceError(f"could not insert task {draft.description!r}")
        self._seq += 1
        task = TaskSnapshot(
            id=f"t{self._seq}",
            member_id=draft.member_id,
            description=draft.description,
            due_date=draft.due_date,
            priority=draft.priority,
            assigned_to_id=draft.assigned_to_id,
            automation_rule_id=draft.automation_rule_id,
        )
        self.rows[task.id] = task
        return task

    def update(self, task_id, patch: TaskPatch, *, expected_completed=None):
        if self.interleave is not None and expected_completed is not None:
            interleave, self.interleave = self.interleave, None
            interleave()

        current = self.get(task_id)
        if expected_completed is not None and current.completed != expected_completed:
            return None
        task = replace(current, completed=patch.completed, completed_at=patch.completed_at)
        self.rows[task_id] = task
        return task

    def claim_first_completion(self, task_id, at) -> bool:
        task = self.get(task_id)
        if task.first_completed_at is not None:
            return False
        self.rows[task_id] = replace(task, first_completed_at=at)
        return True

    def for_member(self, member_id) -> list[TaskSnapshot]:
        return [t for t in self.rows.values() if t.member_id == member_id]


class InMemoryStages:
    def __init__(self, stages: list[StageSnapshot]):
        self.stages = list(stages)
        self.calls = 0

    def stages_for(self, pathway: str) -> list[StageSnapshot]:
        self.calls += 1
        return sorted((s for s in self.stages if s.pathway == pathway), key=lambda s: s.order)


class InMemoryRules:
    def __init__(self, rules: Optional[list[AutomationRuleSnapshot]] = None):
        self.rules = list(rules or [])

    def rules_for(self, stage_id) -> list[AutomationRuleSnapshot]:
        return [r for r in self.rules if r.stage_id == stage_id]


class RecordingNotifier:
    def __init__(self, fail: bool = False):
        self.events = []
        self.fail = fail

    def __call__(self, member, event) -> None:
        self.events.append((member, event))
        if self.fail:
            raise RuntimeError("notification channel down")

    @property
    def kinds(self) -> list[str]:
        return [event.kind.value for _, event in self.events]


class World:
    """One engine wired to fresh in-memory collaborators."""

    def __init__(
        self,
        *,
        stages: Optional[list[StageSnapshot]] = None,
        rules: Optional[list[AutomationRuleSnapshot]] = None,
        now: datetime = datetime(2024, 3, 10, 9, 0),
        notifier: Optional[RecordingNotifier] = None,
    ):
        self.members = InMemoryMembers()
        self.tasks = InMemoryTasks()
        self.stages = InMemoryStages(stages if stages is not None else newcomer_stages())
        self.rules = InMemoryRules(rules)
        self.clock = FixedClock(now)
        self.notifier = notifier if notifier is not None else RecordingNotifier()
        self.engine = self.new_engine()

    def new_engine(self) -> ProgressionEngine:
        """Another engine over the same state, standing in for a concurrent request."""
        return ProgressionEngine(
            members=self.members,
            tasks=self.tasks,
            stages=self.stages,
            rules=self.rules,
            clock=self.clock,
            notifier=self.notifier,
        )

    def add_member(
        self,
        member_id: str = "m1",
        *,
        stage_id: str = "nc1",
        last_change: Optional[datetime] = None,
        status: str = MemberStatus.ACTIVE,
        pathway: str = Pathway.NEWCOMER,
        assigned_to_id: Optional[int] = None,
    ) -> MemberSnapshot:
        return self.members.add(
            MemberSnapshot(
                id=member_id,
                pathway=pathway,
                current_stage_id=stage_id,
                status=status,
                last_stage_change_date=last_change,
                assigned_to_id=assigned_to_id,
            )
        )
