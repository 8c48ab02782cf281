# cm_core/automation/services.py
from __future__ import annotations

from uuid import UUID

from django.core.exceptions import ValidationError
from django.db import transaction

from cm_core.audit.services import AuditService
from cm_core.automation.models import AutomationRule
from cm_core.pathways.models import Stage
from cm_core.tasks.constants import TaskPriority


class AutomationRuleService:
    """
    Automation rule write-model (administrator configuration).
    """

    @staticmethod
    def _get_scoped(*, tenant_id: UUID, rule_id: UUID) -> AutomationRule:
        return AutomationRule.objects.get(id=rule_id, tenant_id=tenant_id)

    @staticmethod
    def _validate(*, task_description=None, days_due=None, priority=None) -> None:
        if task_description is not None and not str(task_description).strip():
            raise ValidationError("Task description is required.")
        if days_due is not None and (isinstance(days_due, bool) or int(days_due) < 0):
            raise ValidationError("days_due must be zero or a positive number of days.")
        if priority is not None and priority not in TaskPriority.values:
            raise ValidationError(f"Unknown priority: {priority!r}.")

    @staticmethod
    @transaction.atomic
    def create_rule(
        *,
        tenant_id: UUID,
        stage_id: UUID,
        task_description: str,
        days_due: int,
        priority: str = TaskPriority.MEDIUM,
        enabled: bool = True,
        name: str = "",
        actor_user_id: int | None = None,
    ) -> AutomationRule:
        # Stage must exist in this tenant
        stage = Stage.objects.get(id=stage_id, tenant_id=tenant_id)
        AutomationRuleService._validate(task_description=task_description, days_due=days_due, priority=priority)

        rule = AutomationRule.objects.create(
            tenant_id=tenant_id,
            stage=stage,
            name=name or "",
            task_description=task_description.strip(),
            days_due=int(days_due),
            priority=priority,
            enabled=enabled,
        )

        AuditService.log(
            event_code="automation_rule.created",
            entity_type="AutomationRule",
            entity_id=rule.id,
            tenant_id=tenant_id,
            actor_user_id=actor_user_id,
            metadata={"stage_id": str(stage.id), "task_description": rule.task_description},
        )
        return rule

    @staticmethod
    @transaction.atomic
    def update_rule(
        *,
        tenant_id: UUID,
        rule_id: UUID,
        data: dict,
        actor_user_id: int | None = None,
    ) -> AutomationRule:
        rule = AutomationRuleService._get_scoped(tenant_id=tenant_id, rule_id=rule_id)

        allowed = {"name", "task_description", "days_due", "priority", "enabled"}
        updates = {k: v for k, v in (data or {}).items() if k in allowed}
        AutomationRuleService._validate(
            task_description=updates.get("task_description"),
            days_due=updates.get("days_due"),
            priority=updates.get("priority"),
        )

        for k, v in updates.items():
            setattr(rule, k, v)
        rule.save()

        AuditService.log(
            event_code="automation_rule.updated",
            entity_type="AutomationRule",
            entity_id=rule.id,
            tenant_id=tenant_id,
            actor_user_id=actor_user_id,
            metadata={"updated_fields": sorted(updates.keys())},
        )
        return rule

    @staticmethod
    @transaction.atomic
    def toggle_rule(
        *,
        tenant_id: UUID,
        rule_id: UUID,
        enabled: bool,
        actor_user_id: int | None = None,
    ) -> AutomationRule:
        rule = AutomationRuleService._get_scoped(tenant_id=tenant_id, rule_id=rule_id)

        # Idempotent no-op
        if rule.enabled == enabled:
            return rule

        rule.enabled = enabled
        rule.save(update_fields=["enabled", "updated_at"])

        AuditService.log(
            event_code="automation_rule.enabled" if enabled else "automation_rule.disabled",
            entity_type="AutomationRule",
            entity_id=rule.id,
            tenant_id=tenant_id,
            actor_user_id=actor_user_id,
            metadata={},
        )
        return rule

    @staticmethod
    @transaction.atomic
    def delete_rule(*, tenant_id: UUID, rule_id: UUID, actor_user_id: int | None = None) -> None:
        rule = AutomationRuleService._get_scoped(tenant_id=tenant_id, rule_id=rule_id)
        deleted_id = rule.id
        rule.delete()

        AuditService.log(
            event_code="automation_rule.deleted",
            entity_type="AutomationRule",
            entity_id=deleted_id,
            tenant_id=tenant_id,
            actor_user_id=actor_user_id,
            metadata={},
        )
