# cm_core/pathways/selectors.py
from __future__ import annotations

from typing import Optional
from uuid import UUID

from django.db.models import Count, QuerySet

from cm_core.pathways.models import Stage


def list_stages(*, tenant_id: UUID, pathway: Optional[str] = None) -> QuerySet[Stage]:
    qs = Stage.objects.for_tenant(tenant_id)
    if pathway:
        qs = qs.filter(pathway=pathway)
    return qs.order_by("pathway", "order")


def get_stage(*, tenant_id: UUID, stage_id: UUID) -> Stage:
    return Stage.objects.get(id=stage_id, tenant_id=tenant_id)


def list_stages_with_counts(*, tenant_id: UUID, pathway: Optional[str] = None) -> QuerySet[Stage]:
    """Stages annotated with `member_count` and `rule_count` (settings screens)."""
    return list_stages(tenant_id=tenant_id, pathway=pathway).annotate(
        member_count=Count("members", distinct=True),
        rule_count=Count("automation_rules", distinct=True),
    )
