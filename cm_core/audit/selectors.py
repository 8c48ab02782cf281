# cm_core/audit/selectors.py
from __future__ import annotations

from uuid import UUID

from django.db.models import QuerySet

from cm_core.audit.models import AuditEvent


def list_entity_events(*, tenant_id: UUID, entity_type: str, entity_id: UUID) -> QuerySet[AuditEvent]:
    return (
        AuditEvent.objects.for_tenant(tenant_id)
        .filter(entity_type=entity_type, entity_id=entity_id)
        .order_by("occurred_at")
    )
