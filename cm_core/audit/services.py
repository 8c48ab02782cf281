# cm_core/audit/services.py
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional
from uuid import UUID

from django.core.serializers.json import DjangoJSONEncoder
from django.db import transaction

from cm_core.audit.models import AuditEvent


def _json_safe(metadata: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    # UUIDs, dates and enums become strings, the same way they reach the event bus
    return json.loads(json.dumps(metadata or {}, cls=DjangoJSONEncoder))


@dataclass(frozen=True)
class AuditRecord:
    id: UUID
    event_code: str
    entity_type: str
    entity_id: UUID
    tenant_id: UUID
    actor_user_id: int | None
    metadata: Dict[str, Any]


class AuditService:
    """
    Machine-readable trail of configuration and progression changes.
    Rows are append-only; `actor_user_id` is None for automatic changes.
    """

    @staticmethod
    @transaction.atomic
    def log(
        *,
        event_code: str,
        entity_type: str,
        entity_id: UUID,
        tenant_id: UUID,
        actor_user_id: int | None = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AuditRecord:
        event = AuditEvent.objects.create(
            tenant_id=tenant_id,
            event_code=event_code,
            entity_type=entity_type,
            entity_id=entity_id,
            actor_user_id=actor_user_id,
            metadata=_json_safe(metadata),
        )
        return AuditRecord(
            id=event.id,
            event_code=event.event_code,
            entity_type=event.entity_type,
            entity_id=event.entity_id,
            tenant_id=event.tenant_id,
            actor_user_id=event.actor_user_id,
            metadata=event.metadata,
        )
