# cm_core/tasks/services.py
from __future__ import annotations

from typing import Optional
from uuid import UUID

from django.core.exceptions import ValidationError
from django.db import transaction

from cm_core.audit.services import AuditService
from cm_core.members.models import Member
from cm_core.progression.domain import TaskCompletion
from cm_core.progression.repositories import task_snapshot
from cm_core.progression.services import ProgressionService
from cm_core.tasks.constants import TaskPriority, TaskSource
from cm_core.tasks.models import Task


class TaskService:
    """
    Task write-model operations.

    Notes:
    - Completion goes through the progression engine: the first open -> completed flip
      evaluates the member's TASK_COMPLETED rule and may advance the member.
    - Re-opening never moves a member back.
    """

    EDITABLE_FIELDS = {"description", "due_date", "priority", "assigned_to_id"}

    # -------------------------
    # Internal helpers
    # -------------------------
    @staticmethod
    def _get_scoped(*, tenant_id: UUID, task_id: UUID) -> Task:
        return Task.objects.get(id=task_id, tenant_id=tenant_id)

    @staticmethod
    def _audit(task: Task, event_code: str, actor_user_id: int | None, metadata: Optional[dict] = None) -> None:
        payload = {"member_id": str(task.member_id), "description": task.description}
        if metadata:
            payload.update(metadata)
        AuditService.log(
            event_code=event_code,
            entity_type="Task",
            entity_id=task.id,
            tenant_id=task.tenant_id,
            actor_user_id=actor_user_id,
            metadata=payload,
        )

    # -------------------------
    # Create / update / delete
    # -------------------------
    @staticmethod
    @transaction.atomic
    def create_task(
        *,
        tenant_id: UUID,
        member_id: UUID,
        description: str,
        due_date=None,
        priority: str = TaskPriority.MEDIUM,
        assigned_to_id: Optional[int] = None,
        actor_user_id: int | None = None,
    ) -> Task:
        member = Member.objects.get(id=member_id, tenant_id=tenant_id)

        description = (description or "").strip()
        if not description:
            raise ValidationError("Task description is required.")
        if priority not in TaskPriority.values:
            raise ValidationError(f"Unknown priority: {priority!r}.")

        task = Task.objects.create(
            tenant_id=tenant_id,
            member=member,
            description=description,
            due_date=due_date,
            priority=priority,
            assigned_to_id=assigned_to_id if assigned_to_id is not None else actor_user_id,
            created_by_id=actor_user_id,
            source=TaskSource.MANUAL,
        )
        TaskService._audit(task, "task.created", actor_user_id)
        return task

    @staticmethod
    @transaction.atomic
    def update_task(
        *,
        tenant_id: UUID,
        task_id: UUID,
        data: dict,
        actor_user_id: int | None = None,
    ) -> Task:
        task = TaskService._get_scoped(tenant_id=tenant_id, task_id=task_id)

        if "completed" in (data or {}):
            raise ValidationError("Use complete_task / reopen_task to change completion.")

        updates = {k: v for k, v in (data or {}).items() if k in TaskService.EDITABLE_FIELDS}
        if "description" in updates:
            updates["description"] = (updates["description"] or "").strip()
            if not updates["description"]:
                raise ValidationError("Task description is required.")
        if "priority" in updates and updates["priority"] not in TaskPriority.values:
            raise ValidationError(f"Unknown priority: {updates['priority']!r}.")

        for field, value in updates.items():
            setattr(task, field, value)
        if updates:
            task.save(update_fields=[*updates.keys(), "updated_at"])

        TaskService._audit(task, "task.updated", actor_user_id, {"updated_fields": sorted(updates.keys())})
        return task

    @staticmethod
    @transaction.atomic
    def delete_task(*, tenant_id: UUID, task_id: UUID, actor_user_id: int | None = None) -> None:
        task = TaskService._get_scoped(tenant_id=tenant_id, task_id=task_id)
        TaskService._audit(task, "task.deleted", actor_user_id)
        task.delete()

    # -------------------------
    # Completion
    # -------------------------
    @staticmethod
    @transaction.atomic
    def complete_task(
        *,
        tenant_id: UUID,
        task_id: UUID,
        actor_user_id: int | None = None,
    ) -> TaskCompletion:
        task = TaskService._get_scoped(tenant_id=tenant_id, task_id=task_id)
        if task.completed:
            # Idempotent no-op: no second auto-advance evaluation
            return TaskCompletion(task=task_snapshot(task))

        completion = ProgressionService.complete_task(
            tenant_id=tenant_id,
            task_id=task_id,
            assignee_id=actor_user_id,
        )
        task.refresh_from_db()
        if not completion.changed:
            return completion

        metadata = {}
        if completion.transition is not None:
            metadata = {
                "transition": completion.transition.outcome.value,
                "to_stage_id": str(completion.transition.to_stage_id),
            }
        TaskService._audit(task, "task.completed", actor_user_id, metadata)
        return completion

    @staticmethod
    @transaction.atomic
    def reopen_task(*, tenant_id: UUID, task_id: UUID, actor_user_id: int | None = None) -> Task:
        task = TaskService._get_scoped(tenant_id=tenant_id, task_id=task_id)
        if not task.completed:
            return task

        ProgressionService.reopen_task(tenant_id=tenant_id, task_id=task_id)
        task.refresh_from_db()
        TaskService._audit(task, "task.reopened", actor_user_id)
        return task

    @staticmethod
    def toggle_task(*, tenant_id: UUID, task_id: UUID, actor_user_id: int | None = None) -> Task:
        """Checkbox behaviour: completes an open task, re-opens a completed one."""
        task = TaskService._get_scoped(tenant_id=tenant_id, task_id=task_id)
        if task.completed:
            return TaskService.reopen_task(tenant_id=tenant_id, task_id=task_id, actor_user_id=actor_user_id)

        TaskService.complete_task(tenant_id=tenant_id, task_id=task_id, actor_user_id=actor_user_id)
        task.refresh_from_db()
        return task
