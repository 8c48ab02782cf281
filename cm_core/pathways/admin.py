# cm_core/pathways/admin.py
from __future__ import annotations

from django.contrib import admin

from cm_core.pathways.models import Stage


@admin.register(Stage)
class StageAdmin(admin.ModelAdmin):
    list_display = (
        "pathway",
        "order",
        "name",
        "auto_advance_type",
        "auto_advance_value",
        "tenant_id",
        "updated_at",
    )
    list_filter = ("pathway", "auto_advance_type")
    search_fields = ("name", "description")
    ordering = ("tenant_id", "pathway", "order")
    readonly_fields = ("created_at", "updated_at")

    fieldsets = (
        ("Scope", {"fields": ("tenant_id",)}),
        ("Stage", {"fields": ("pathway", "order", "name", "description")}),
        ("Auto-advance", {"fields": ("auto_advance_type", "auto_advance_value")}),
        ("Audit", {"fields": ("created_at", "updated_at")}),
    )
