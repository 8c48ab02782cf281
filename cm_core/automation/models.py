# cm_core/automation/models.py
from django.db import models

from cm_core.common.models import ScopedModel
from cm_core.pathways.models import Stage
from cm_core.tasks.constants import TaskPriority


class AutomationRule(ScopedModel):
    """
    Spawns one task when a member enters `stage`.
    Disabling is a soft toggle: disabled rules stay in the set but never fire.
    """
    stage = models.ForeignKey(Stage, on_delete=models.CASCADE, related_name="automation_rules")

    name = models.CharField(max_length=255, blank=True)
    task_description = models.CharField(max_length=255)
    days_due = models.PositiveIntegerField(default=0)
    priority = models.CharField(
        max_length=16,
        choices=TaskPriority.choices,
        default=TaskPriority.MEDIUM,
    )
    enabled = models.BooleanField(default=True, db_index=True)

    class Meta:
        db_table = "automation_rule"
        indexes = [
            models.Index(fields=["tenant_id", "stage", "enabled"]),
        ]

    def __str__(self) -> str:
        return self.name or self.task_description
