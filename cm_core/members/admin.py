# cm_core/members/admin.py
from __future__ import annotations

from django.contrib import admin

from cm_core.members.models import Member, MemberNote


class MemberNoteInline(admin.TabularInline):
    model = MemberNote
    extra = 0
    fields = ("created_at", "content", "is_system", "created_by_id")
    readonly_fields = ("created_at",)
    ordering = ("-created_at",)


@admin.register(Member)
class MemberAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "first_name",
        "last_name",
        "pathway",
        "current_stage",
        "status",
        "last_stage_change_date",
        "assigned_to_id",
        "tenant_id",
    )
    list_filter = ("pathway", "status")
    search_fields = ("id", "first_name", "last_name", "email", "phone")
    ordering = ("-created_at",)
    readonly_fields = ("created_at", "updated_at", "last_stage_change_date")
    list_select_related = ("current_stage",)
    inlines = [MemberNoteInline]

    fieldsets = (
        ("Scope", {"fields": ("tenant_id",)}),
        ("Person", {"fields": ("first_name", "last_name", "email", "phone", "joined_date")}),
        ("Pathway", {"fields": ("pathway", "current_stage", "status", "last_stage_change_date")}),
        ("Assignment", {"fields": ("assigned_to_id",)}),
        ("Audit", {"fields": ("created_at", "updated_at")}),
    )
