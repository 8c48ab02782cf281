# cm_core/progression/repositories.py
"""
Django ORM adapters for the progression engine, scoped to one tenant.
"""
from __future__ import annotations

import functools
from datetime import datetime
from typing import Any, Iterator, Optional
from uuid import UUID

from django.db import DatabaseError
from django.utils.timezone import now

from cm_core.automation.evaluator import TaskDraft
from cm_core.automation.models import AutomationRule
from cm_core.automation.selectors import rules_for_stage
from cm_core.members.models import Member, MemberNote
from cm_core.pathways.models import Stage
from cm_core.pathways.selectors import list_stages
from cm_core.progression.domain import (
    AutomationRuleSnapshot,
    MemberFilter,
    MemberPatch,
    MemberSnapshot,
    StageSnapshot,
    TaskPatch,
    TaskSnapshot,
)
from cm_core.progression.exceptions import MemberNotFound, PersistenceError, TaskNotFound
from cm_core.tasks.constants import TaskSource
from cm_core.tasks.models import Task


def wraps_db_errors(fn):
    @functools.wraps(fn)
    def _wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except DatabaseError as exc:
            raise PersistenceError(str(exc), {"operation": fn.__qualname__}) from exc
    return _wrapper


def member_snapshot(member: Member, *, with_notes: bool = True) -> MemberSnapshot:
    notes: tuple = ()
    if with_notes:
        notes = tuple(member.notes.order_by("-created_at").values_list("content", flat=True))
    return MemberSnapshot(
        id=member.id,
        pathway=member.pathway,
        current_stage_id=member.current_stage_id,
        status=member.status,
        last_stage_change_date=member.last_stage_change_date,
        assigned_to_id=member.assigned_to_id,
        notes=notes,
    )


def task_snapshot(task: Task) -> TaskSnapshot:
    return TaskSnapshot(
        id=task.id,
        member_id=task.member_id,
        description=task.description,
        due_date=task.due_date,
        priority=task.priority,
        completed=task.completed,
        completed_at=task.completed_at,
        first_completed_at=task.first_completed_at,
        assigned_to_id=task.assigned_to_id,
        automation_rule_id=task.automation_rule_id,
    )


def stage_snapshot(stage: Stage) -> StageSnapshot:
    return StageSnapshot(
        id=stage.id,
        pathway=stage.pathway,
        name=stage.name,
        order=stage.order,
        description=stage.description,
        auto_advance_rule=stage.auto_advance_rule,
    )


def rule_snapshot(rule: AutomationRule) -> AutomationRuleSnapshot:
    return AutomationRuleSnapshot(
        id=rule.id,
        stage_id=rule.stage_id,
        task_description=rule.task_description,
        days_due=rule.days_due,
        priority=rule.priority,
        enabled=rule.enabled,
    )


class DjangoMemberRepository:
    def __init__(self, tenant_id: UUID):
        self.tenant_id = tenant_id

    def _scoped(self):
        return Member.objects.for_tenant(self.tenant_id)

    @wraps_db_errors
    def get(self, member_id: Any) -> MemberSnapshot:
        try:
            member = self._scoped().get(id=member_id)
        except Member.DoesNotExist:
            raise MemberNotFound(f"Member {member_id} not found", {"member_id": str(member_id)})
        return member_snapshot(member)

    @wraps_db_errors
    def list(self, member_filter: MemberFilter) -> Iterator[MemberSnapshot]:
        qs = self._scoped()
        if member_filter.pathway:
            qs = qs.filter(pathway=member_filter.pathway)
        if member_filter.exclude_statuses:
            qs = qs.exclude(status__in=member_filter.exclude_statuses)
        if member_filter.after_id is not None:
            qs = qs.filter(id__gt=member_filter.after_id)
        qs = qs.order_by("id")
        if member_filter.limit is not None:
            qs = qs[: member_filter.limit]
        # materialized so the sweep does not hold a cursor across per-member transactions
        return iter([member_snapshot(m, with_notes=False) for m in qs])

    @wraps_db_errors
    def update(
        self,
        member_id: Any,
        patch: MemberPatch,
        *,
        expected_stage_id: Any = None,
        expected_status: Optional[str] = None,
    ) -> Optional[MemberSnapshot]:
        qs = self._scoped().filter(id=member_id)
        if expected_stage_id is not None:
            qs = qs.filter(current_stage_id=expected_stage_id)
        if expected_status is not None:
            qs = qs.filter(status=expected_status)

        if patch.changes_fields:
            fields = {"updated_at": now()}
            if patch.current_stage_id is not None:
                fields["current_stage_id"] = patch.current_stage_id
            if patch.last_stage_change_date is not None:
                fields["last_stage_change_date"] = patch.last_stage_change_date
            if patch.status is not None:
                fields["status"] = patch.status
            if qs.update(**fields) == 0:
                if not self._scoped().filter(id=member_id).exists():
                    raise MemberNotFound(f"Member {member_id} not found", {"member_id": str(member_id)})
                return None
        elif not qs.exists():
            if not self._scoped().filter(id=member_id).exists():
                raise MemberNotFound(f"Member {member_id} not found", {"member_id": str(member_id)})
            return None

        if patch.note:
            MemberNote.objects.create(
                tenant_id=self.tenant_id,
                member_id=member_id,
                content=patch.note,
                is_system=True,
            )
        return self.get(member_id)


class DjangoTaskRepository:
    def __init__(self, tenant_id: UUID):
        self.tenant_id = tenant_id

    def _get_row(self, task_id: Any) -> Task:
        try:
            return Task.objects.for_tenant(self.tenant_id).get(id=task_id)
        except Task.DoesNotExist:
            raise TaskNotFound(f"Task {task_id} not found", {"task_id": str(task_id)})

    @wraps_db_errors
    def get(self, task_id: Any) -> TaskSnapshot:
        return task_snapshot(self._get_row(task_id))

    @wraps_db_errors
    def create(self, draft: TaskDraft) -> TaskSnapshot:
        task = Task.objects.create(
            tenant_id=self.tenant_id,
            member_id=draft.member_id,
            description=draft.description,
            due_date=draft.due_date,
            priority=draft.priority,
            assigned_to_id=draft.assigned_to_id,
            automation_rule_id=draft.automation_rule_id,
            source=TaskSource.AUTOMATION if draft.automation_rule_id else TaskSource.MANUAL,
        )
        return task_snapshot(task)

    @wraps_db_errors
    def update(
        self,
        task_id: Any,
        patch: TaskPatch,
        *,
        expected_completed: Optional[bool] = None,
    ) -> Optional[TaskSnapshot]:
        qs = Task.objects.for_tenant(self.tenant_id).filter(id=task_id)
        if expected_completed is not None:
            qs = qs.filter(completed=expected_completed)
        if qs.update(completed=patch.completed, completed_at=patch.completed_at, updated_at=now()) == 0:
            self._get_row(task_id)
            return None
        return task_snapshot(self._get_row(task_id))

    @wraps_db_errors
    def claim_first_completion(self, task_id: Any, at: datetime) -> bool:
        qs = Task.objects.for_tenant(self.tenant_id).filter(id=task_id, first_completed_at__isnull=True)
        return qs.update(first_completed_at=at) == 1


class DjangoStageCatalog:
    def __init__(self, tenant_id: UUID):
        self.tenant_id = tenant_id

    @wraps_db_errors
    def stages_for(self, pathway: str) -> list[StageSnapshot]:
        return [stage_snapshot(stage) for stage in list_stages(tenant_id=self.tenant_id, pathway=pathway)]


class DjangoAutomationRuleSet:
    def __init__(self, tenant_id: UUID):
        self.tenant_id = tenant_id

    @wraps_db_errors
    def rules_for(self, stage_id: Any) -> list[AutomationRuleSnapshot]:
        return [rule_snapshot(rule) for rule in rules_for_stage(tenant_id=self.tenant_id, stage_id=stage_id)]
