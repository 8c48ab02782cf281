# cm_core/tasks/selectors.py
from __future__ import annotations

from typing import Any, Optional

from django.core.exceptions import ValidationError
from django.db.models import QuerySet
from django.utils.dateparse import parse_date
from django.utils.timezone import localdate

from cm_core.tasks.models import Task

TRUTHY = {"1", "true", "True", True}


class TaskSelector:
    class NotFound(Exception):
        pass

    @staticmethod
    def get_task(*, tenant_id, task_id) -> Task:
        try:
            return Task.objects.select_related("member").get(id=task_id, tenant_id=tenant_id)
        except Task.DoesNotExist:
            raise TaskSelector.NotFound()

    @staticmethod
    def list_tasks(*, tenant_id, user_id: Optional[int] = None, params: Any = None) -> QuerySet[Task]:
        """
        Supported params:
          - member_id
          - completed=1|true / 0|false
          - assigned_to_id
          - mine=1|true
          - overdue=1|true
          - due_before=ISO date
          - due_after=ISO date
          - priority
          - ordering in {created_at, -created_at, due_date, -due_date}
        """
        params = params or {}
        member_id = params.get("member_id")
        completed = params.get("completed")
        assigned_to_id = params.get("assigned_to_id")
        priority = params.get("priority")
        overdue = params.get("overdue")
        due_before = params.get("due_before")
        due_after = params.get("due_after")
        ordering = params.get("ordering")
        mine = params.get("mine")

        qs = Task.objects.for_tenant(tenant_id).select_related("member")

        if member_id:
            qs = qs.filter(member_id=member_id)

        if completed is not None and completed != "":
            qs = qs.filter(completed=completed in TRUTHY)

        if assigned_to_id:
            qs = qs.filter(assigned_to_id=assigned_to_id)

        if priority:
            qs = qs.filter(priority=priority)

        if mine in TRUTHY:
            if not user_id:
                raise ValidationError("mine=1 requires an authenticated user.")
            qs = qs.filter(assigned_to_id=user_id)

        if overdue in TRUTHY:
            qs = qs.filter(due_date__lt=localdate(), completed=False)

        if due_before:
            d = parse_date(str(due_before))
            if not d:
                raise ValidationError("due_before is invalid. Use ISO date.")
            qs = qs.filter(due_date__lte=d)

        if due_after:
            d = parse_date(str(due_after))
            if not d:
                raise ValidationError("due_after is invalid. Use ISO date.")
            qs = qs.filter(due_date__gte=d)

        allowed = {"created_at", "-created_at", "due_date", "-due_date"}
        if ordering:
            if ordering not in allowed:
                raise ValidationError(f"ordering is invalid. Allowed: {sorted(allowed)}")
            qs = qs.order_by(ordering, "id")
        else:
            qs = qs.order_by("completed", "due_date", "-created_at")

        return qs
