# cm_core/automation/admin.py
from __future__ import annotations

from django.contrib import admin

from cm_core.automation.models import AutomationRule


@admin.register(AutomationRule)
class AutomationRuleAdmin(admin.ModelAdmin):
    list_display = ("task_description", "stage", "days_due", "priority", "enabled", "tenant_id", "updated_at")
    list_filter = ("enabled", "priority")
    search_fields = ("name", "task_description")
    readonly_fields = ("created_at", "updated_at")
    list_select_related = ("stage",)
