# cm_core/progression/models.py
from django.db import models

from cm_core.common.models import ScopedModel


class SweepCursor(ScopedModel):
    """
    Where the next time-in-stage pass of a tenant resumes when passes are capped
    by PROGRESSION_SWEEP_BATCH_LIMIT. Empty means "start from the first member".
    """
    resume_after = models.UUIDField(null=True, blank=True)

    class Meta:
        db_table = "progression_sweep_cursor"
        constraints = [
            models.UniqueConstraint(fields=["tenant_id"], name="uniq_sweep_cursor_per_tenant"),
        ]

    def __str__(self) -> str:
        return f"{self.tenant_id} -> {self.resume_after or 'start'}"
