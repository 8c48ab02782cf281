# cm_core/tasks/models.py
from django.db import models
from django.utils.timezone import localdate

from cm_core.automation.models import AutomationRule
from cm_core.common.models import ScopedModel
from cm_core.members.models import Member
from cm_core.tasks.constants import TaskPriority, TaskSource


class Task(ScopedModel):
    """
    Follow-up task for a member, created by a person or by an automation rule.
    """
    member = models.ForeignKey(Member, on_delete=models.CASCADE, related_name="tasks")

    description = models.CharField(max_length=255)
    due_date = models.DateField(null=True, blank=True, db_index=True)
    priority = models.CharField(
        max_length=16,
        choices=TaskPriority.choices,
        default=TaskPriority.MEDIUM,
        db_index=True,
    )

    completed = models.BooleanField(default=False, db_index=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    # set by the first completion only; reopening keeps it, so auto-advance is evaluated once per task
    first_completed_at = models.DateTimeField(null=True, blank=True, editable=False)

    # opaque user ids owned by the auth collaborator
    assigned_to_id = models.BigIntegerField(null=True, blank=True, db_index=True)
    created_by_id = models.BigIntegerField(null=True, blank=True)

    source = models.CharField(max_length=16, choices=TaskSource.choices, default=TaskSource.MANUAL)
    automation_rule = models.ForeignKey(
        AutomationRule,
        on_delete=models.SET_NULL,
        related_name="tasks",
        null=True,
        blank=True,
    )

    class Meta:
        db_table = "tasks_task"
        indexes = [
            models.Index(fields=["tenant_id", "completed", "due_date"]),
            models.Index(fields=["tenant_id", "member", "completed"]),
            models.Index(fields=["tenant_id", "assigned_to_id", "completed"]),
        ]

    @property
    def is_overdue(self) -> bool:
        """
        Overdue if:
        - due_date exists
        - task is still open
        - due_date is before today (calendar days, local time)
        """
        if not self.due_date or self.completed:
            return False
        return self.due_date < localdate()

    def __str__(self) -> str:
        return self.description
