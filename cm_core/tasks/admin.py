# cm_core/tasks/admin.py
from __future__ import annotations

from django.contrib import admin

from cm_core.tasks.models import Task


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "tenant_id",
        "member",
        "description",
        "priority",
        "completed",
        "assigned_to_id",
        "due_date",
        "source",
        "created_at",
    )
    list_filter = ("completed", "priority", "source")
    search_fields = ("id", "member__first_name", "member__last_name", "description")
    ordering = ("-created_at",)

    readonly_fields = ("created_at", "updated_at", "completed_at", "first_completed_at")

    # helps performance on large tables
    list_select_related = ("member", "automation_rule")

    fieldsets = (
        ("Scope", {"fields": ("tenant_id",)}),
        ("Task", {"fields": ("member", "description", "priority", "source", "automation_rule")}),
        ("Assignment", {"fields": ("assigned_to_id",)}),
        ("Timing", {"fields": ("due_date", "completed", "completed_at", "first_completed_at")}),
        ("Audit", {"fields": ("created_at", "updated_at")}),
    )
