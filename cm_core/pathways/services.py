# cm_core/pathways/services.py
from __future__ import annotations

from typing import Optional
from uuid import UUID

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils.timezone import now

from cm_core.audit.services import AuditService
from cm_core.pathways.constants import AutoAdvanceType, Pathway
from cm_core.pathways.models import Stage
from cm_core.pathways.rules import AutoAdvanceRule, parse_auto_advance_rule, serialize_auto_advance_rule


class StageService:
    """
    Stage catalog write-model (administrator configuration).

    Notes:
    - `order` is 1-based and contiguous per pathway; every write re-normalizes it.
    - Inserting at an occupied order shifts that stage and all later ones down by one.
    - A stage with members in it cannot be deleted.
    """

    # -------------------------
    # Internal helpers
    # -------------------------
    @staticmethod
    def _get_scoped(*, tenant_id: UUID, stage_id: UUID) -> Stage:
        return Stage.objects.get(id=stage_id, tenant_id=tenant_id)

    @staticmethod
    def _pathway_stages(*, tenant_id: UUID, pathway: str) -> list[Stage]:
        return list(
            Stage.objects.select_for_update()
            .filter(tenant_id=tenant_id, pathway=pathway)
            .order_by("order", "created_at")
        )

    @staticmethod
    def _apply_orders(stages: list[Stage]) -> None:
        changed: list[Stage] = []
        ts = now()
        for position, stage in enumerate(stages, start=1):
            if stage.order != position:
                stage.order = position
                stage.updated_at = ts
                changed.append(stage)
        if changed:
            Stage.objects.bulk_update(changed, ["order", "updated_at"])

    @staticmethod
    def _validate_pathway(pathway: str) -> None:
        if pathway not in Pathway.values:
            raise ValidationError(f"Unknown pathway: {pathway!r}.")

    @staticmethod
    def _validate_name(*, tenant_id: UUID, pathway: str, name: str, exclude_id: Optional[UUID] = None) -> str:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Stage name is required.")
        qs = Stage.objects.for_tenant(tenant_id).filter(pathway=pathway, name=name)
        if exclude_id is not None:
            qs = qs.exclude(id=exclude_id)
        if qs.exists():
            raise ValidationError("Stage with this name already exists for this pathway.")
        return name

    @staticmethod
    def _validate_rule(rule_type: str, rule_value) -> tuple[str, str]:
        """Returns the normalized (type, value) pair; ("", "") clears the rule."""
        if not rule_type:
            return "", ""
        if rule_type not in AutoAdvanceType.values:
            raise ValidationError(f"Unknown auto-advance rule type: {rule_type!r}.")
        rule = parse_auto_advance_rule(rule_type, rule_value)
        if rule is None:
            if rule_type == AutoAdvanceType.TIME_IN_STAGE:
                raise ValidationError("TIME_IN_STAGE rule needs a positive number of days.")
            raise ValidationError("TASK_COMPLETED rule needs a non-empty keyword.")
        return serialize_auto_advance_rule(rule)

    @staticmethod
    def _move(stages: list[Stage], stage: Stage, new_order: int) -> None:
        stages.remove(stage)
        position = min(max(int(new_order), 1), len(stages) + 1)
        stages.insert(position - 1, stage)

    # -------------------------
    # Create
    # -------------------------
    @staticmethod
    @transaction.atomic
    def create_stage(
        *,
        tenant_id: UUID,
        pathway: str,
        name: str,
        order: Optional[int] = None,
        description: str = "",
        auto_advance_type: str = "",
        auto_advance_value=None,
        actor_user_id: int | None = None,
    ) -> Stage:
        StageService._validate_pathway(pathway)
        name = StageService._validate_name(tenant_id=tenant_id, pathway=pathway, name=name)
        rule_type, rule_value = StageService._validate_rule(auto_advance_type, auto_advance_value)

        stages = StageService._pathway_stages(tenant_id=tenant_id, pathway=pathway)
        position = len(stages) + 1 if order is None else min(max(int(order), 1), len(stages) + 1)

        stage = Stage.objects.create(
            tenant_id=tenant_id,
            pathway=pathway,
            name=name,
            order=position,
            description=description or "",
            auto_advance_type=rule_type,
            auto_advance_value=rule_value,
        )
        stages.insert(position - 1, stage)
        StageService._apply_orders(stages)

        AuditService.log(
            event_code="stage.created",
            entity_type="Stage",
            entity_id=stage.id,
            tenant_id=tenant_id,
            actor_user_id=actor_user_id,
            metadata={"pathway": pathway, "name": name, "order": stage.order},
        )
        return stage

    # -------------------------
    # Update (rename / describe / rule / reorder)
    # -------------------------
    @staticmethod
    @transaction.atomic
    def update_stage(
        *,
        tenant_id: UUID,
        stage_id: UUID,
        data: dict,
        actor_user_id: int | None = None,
    ) -> Stage:
        stage = StageService._get_scoped(tenant_id=tenant_id, stage_id=stage_id)

        allowed = {"name", "description", "order", "auto_advance_type", "auto_advance_value"}
        updates = {k: v for k, v in (data or {}).items() if k in allowed}
        update_fields: list[str] = []

        if "name" in updates and updates["name"] != stage.name:
            stage.name = StageService._validate_name(
                tenant_id=tenant_id,
                pathway=stage.pathway,
                name=updates["name"],
                exclude_id=stage.id,
            )
            update_fields.append("name")

        if "description" in updates:
            stage.description = updates["description"] or ""
            update_fields.append("description")

        if "auto_advance_type" in updates or "auto_advance_value" in updates:
            rule_type = updates.get("auto_advance_type", stage.auto_advance_type)
            rule_value = updates.get("auto_advance_value", stage.auto_advance_value)
            stage.auto_advance_type, stage.auto_advance_value = StageService._validate_rule(rule_type, rule_value)
            update_fields += ["auto_advance_type", "auto_advance_value"]

        if update_fields:
            update_fields.append("updated_at")
            stage.save(update_fields=update_fields)

        if updates.get("order") is not None and int(updates["order"]) != stage.order:
            stages = StageService._pathway_stages(tenant_id=tenant_id, pathway=stage.pathway)
            current = next(s for s in stages if s.id == stage.id)
            StageService._move(stages, current, updates["order"])
            StageService._apply_orders(stages)
            stage.refresh_from_db()

        AuditService.log(
            event_code="stage.updated",
            entity_type="Stage",
            entity_id=stage.id,
            tenant_id=tenant_id,
            actor_user_id=actor_user_id,
            metadata={"updated_fields": sorted(updates.keys())},
        )
        return stage

    @staticmethod
    def set_auto_advance_rule(
        *,
        tenant_id: UUID,
        stage_id: UUID,
        rule: Optional[AutoAdvanceRule],
        actor_user_id: int | None = None,
    ) -> Stage:
        rule_type, rule_value = serialize_auto_advance_rule(rule)
        return StageService.update_stage(
            tenant_id=tenant_id,
            stage_id=stage_id,
            data={"auto_advance_type": rule_type, "auto_advance_value": rule_value},
            actor_user_id=actor_user_id,
        )

    # -------------------------
    # Delete
    # -------------------------
    @staticmethod
    @transaction.atomic
    def delete_stage(*, tenant_id: UUID, stage_id: UUID, actor_user_id: int | None = None) -> None:
        stage = StageService._get_scoped(tenant_id=tenant_id, stage_id=stage_id)

        member_count = stage.members.count()
        if member_count:
            raise ValidationError(
                f"Cannot delete stage with {member_count} members. Move them to another stage first."
            )

        pathway = stage.pathway
        deleted_id = stage.id
        stage.delete()

        StageService._apply_orders(StageService._pathway_stages(tenant_id=tenant_id, pathway=pathway))

        AuditService.log(
            event_code="stage.deleted",
            entity_type="Stage",
            entity_id=deleted_id,
            tenant_id=tenant_id,
            actor_user_id=actor_user_id,
            metadata={"pathway": pathway},
        )

    # -------------------------
    # Bulk reorder
    # -------------------------
    @staticmethod
    @transaction.atomic
    def reorder_stages(
        *,
        tenant_id: UUID,
        pathway: str,
        stage_ids: list[UUID],
        actor_user_id: int | None = None,
    ) -> list[Stage]:
        """
        `stage_ids` is the complete new order of the pathway, first stage first.
        """
        StageService._validate_pathway(pathway)
        stages = StageService._pathway_stages(tenant_id=tenant_id, pathway=pathway)
        by_id = {str(s.id): s for s in stages}
        wanted = [str(sid) for sid in stage_ids]

        if len(wanted) != len(set(wanted)) or set(wanted) != set(by_id):
            raise ValidationError("Reorder must list every stage of the pathway exactly once.")

        ordered = [by_id[sid] for sid in wanted]
        StageService._apply_orders(ordered)

        AuditService.log(
            event_code="stage.reordered",
            entity_type="Pathway",
            entity_id=ordered[0].id if ordered else tenant_id,
            tenant_id=tenant_id,
            actor_user_id=actor_user_id,
            metadata={"pathway": pathway, "stage_ids": wanted},
        )
        return ordered
