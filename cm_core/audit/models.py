# cm_core/audit/models.py
from django.db import models
from cm_core.common.models import ScopedModel


class AuditEvent(ScopedModel):
    """
    Immutable audit record.
    Member notes are the human-readable trail; this is the machine-readable one.
    """
    event_code = models.CharField(max_length=128, db_index=True)  # e.g. "member.stage_advanced"
    entity_type = models.CharField(max_length=128, db_index=True)  # e.g. "Member"
    entity_id = models.UUIDField(db_index=True)

    # opaque user id owned by the auth collaborator
    actor_user_id = models.BigIntegerField(null=True, blank=True)

    occurred_at = models.DateTimeField(auto_now_add=True, db_index=True)
    metadata = models.JSONField(default=dict)

    class Meta:
        db_table = "audit_audit_event"
        indexes = [
            models.Index(fields=["tenant_id", "occurred_at"]),
            models.Index(fields=["entity_type", "entity_id"]),
            models.Index(fields=["tenant_id", "event_code"]),
        ]
