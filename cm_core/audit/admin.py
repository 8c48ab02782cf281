# cm_core/audit/admin.py
from __future__ import annotations

from django.contrib import admin

from cm_core.audit.models import AuditEvent


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ("occurred_at", "event_code", "entity_type", "entity_id", "actor_user_id", "tenant_id")
    list_filter = ("event_code", "entity_type")
    search_fields = ("entity_id", "event_code")
    ordering = ("-occurred_at",)
    readonly_fields = ("occurred_at", "created_at", "updated_at")
