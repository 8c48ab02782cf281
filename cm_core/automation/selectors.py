# cm_core/automation/selectors.py
from __future__ import annotations

from typing import Optional
from uuid import UUID

from django.db.models import QuerySet

from cm_core.automation.models import AutomationRule


def list_rules(*, tenant_id: UUID, stage_id: Optional[UUID] = None, enabled_only: bool = False) -> QuerySet[AutomationRule]:
    qs = AutomationRule.objects.for_tenant(tenant_id).select_related("stage")
    if stage_id:
        qs = qs.filter(stage_id=stage_id)
    if enabled_only:
        qs = qs.filter(enabled=True)
    return qs.order_by("stage__pathway", "stage__order", "created_at")


def rules_for_stage(*, tenant_id: UUID, stage_id: UUID) -> QuerySet[AutomationRule]:
    """Every rule of the stage, disabled included, in insertion order."""
    return AutomationRule.objects.for_tenant(tenant_id).filter(stage_id=stage_id).order_by("created_at", "id")
