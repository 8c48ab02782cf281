# cm_core/members/services.py
from __future__ import annotations

from typing import Optional
from uuid import UUID

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils.timezone import localdate, now

from cm_core.audit.services import AuditService
from cm_core.members.constants import MemberStatus
from cm_core.members.models import Member, MemberNote
from cm_core.pathways.constants import Pathway
from cm_core.pathways.models import Stage
from cm_core.progression.domain import TransitionResult
from cm_core.progression.exceptions import ConfigurationError, ProgressionError
from cm_core.progression.services import ProgressionService


class MemberService:
    """
    Member write-model.

    Notes:
    - Stage and pathway completion changes always go through ProgressionService, never
      through update_member.
    - Automation tasks created by a manual move are assigned to the acting user,
      falling back to the member's assignee.
    """

    PROFILE_FIELDS = {"first_name", "last_name", "email", "phone", "assigned_to_id", "joined_date"}
    MANUAL_STATUSES = {MemberStatus.ACTIVE, MemberStatus.INACTIVE}

    # -------------------------
    # Internal helpers
    # -------------------------
    @staticmethod
    def _get_scoped(*, tenant_id: UUID, member_id: UUID) -> Member:
        return Member.objects.get(id=member_id, tenant_id=tenant_id)

    @staticmethod
    def _system_note(member: Member, content: str) -> MemberNote:
        return MemberNote.objects.create(
            tenant_id=member.tenant_id,
            member=member,
            content=f"[System] {content}",
            is_system=True,
        )

    @staticmethod
    def _audit_transition(
        *,
        tenant_id: UUID,
        member_id: UUID,
        result: TransitionResult,
        event_code: str,
        actor_user_id: int | None,
    ) -> None:
        if not result.changed:
            return
        AuditService.log(
            event_code=event_code,
            entity_type="Member",
            entity_id=member_id,
            tenant_id=tenant_id,
            actor_user_id=actor_user_id,
            metadata={
                "outcome": result.outcome.value,
                "from_stage_id": str(result.from_stage_id) if result.from_stage_id else None,
                "to_stage_id": str(result.to_stage_id) if result.to_stage_id else None,
                "reason": result.reason,
                "created_task_ids": [str(t.id) for t in result.created_tasks],
            },
        )

    # -------------------------
    # Create / update
    # -------------------------
    @staticmethod
    @transaction.atomic
    def create_member(
        *,
        tenant_id: UUID,
        first_name: str,
        pathway: str,
        stage_id: Optional[UUID] = None,
        last_name: str = "",
        email: str = "",
        phone: str = "",
        assigned_to_id: Optional[int] = None,
        joined_date=None,
        actor_user_id: int | None = None,
    ) -> Member:
        """
        Places a new member in `stage_id` (default: first stage of the pathway).
        Entering the initial stage does not run automation rules.
        """
        if pathway not in Pathway.values:
            raise ValidationError(f"Unknown pathway: {pathway!r}.")
        if not (first_name or "").strip():
            raise ValidationError("First name is required.")

        stages = Stage.objects.for_tenant(tenant_id).filter(pathway=pathway).order_by("order")
        if stage_id is not None:
            stage = stages.filter(id=stage_id).first()
            if stage is None:
                raise ValidationError("Stage does not belong to this pathway.")
        else:
            stage = stages.first()
            if stage is None:
                raise ValidationError(f"Pathway {pathway} has no stages configured.")

        member = Member.objects.create(
            tenant_id=tenant_id,
            first_name=first_name.strip(),
            last_name=(last_name or "").strip(),
            email=email or "",
            phone=phone or "",
            pathway=pathway,
            current_stage=stage,
            last_stage_change_date=now(),
            status=MemberStatus.ACTIVE,
            assigned_to_id=assigned_to_id,
            created_by_id=actor_user_id,
            joined_date=joined_date or localdate(),
        )
        MemberService._system_note(member, f"Member added to {Pathway(pathway).label} pathway")

        AuditService.log(
            event_code="member.created",
            entity_type="Member",
            entity_id=member.id,
            tenant_id=tenant_id,
            actor_user_id=actor_user_id,
            metadata={"pathway": pathway, "stage_id": str(stage.id)},
        )
        return member

    @staticmethod
    @transaction.atomic
    def update_member(
        *,
        tenant_id: UUID,
        member_id: UUID,
        data: dict,
        actor_user_id: int | None = None,
    ) -> Member:
        member = MemberService._get_scoped(tenant_id=tenant_id, member_id=member_id)

        forbidden = {"pathway", "current_stage", "current_stage_id", "status", "last_stage_change_date"} & set(data or {})
        if forbidden:
            raise ValidationError(f"Use the progression actions to change: {', '.join(sorted(forbidden))}.")

        updates = {k: v for k, v in (data or {}).items() if k in MemberService.PROFILE_FIELDS}
        if "first_name" in updates and not (updates["first_name"] or "").strip():
            raise ValidationError("First name is required.")

        for field, value in updates.items():
            setattr(member, field, value)
        if updates:
            member.save(update_fields=[*updates.keys(), "updated_at"])

        AuditService.log(
            event_code="member.updated",
            entity_type="Member",
            entity_id=member.id,
            tenant_id=tenant_id,
            actor_user_id=actor_user_id,
            metadata={"updated_fields": sorted(updates.keys())},
        )
        return member

    @staticmethod
    @transaction.atomic
    def add_note(
        *,
        tenant_id: UUID,
        member_id: UUID,
        content: str,
        actor_user_id: int | None = None,
    ) -> MemberNote:
        member = MemberService._get_scoped(tenant_id=tenant_id, member_id=member_id)
        content = (content or "").strip()
        if not content:
            raise ValidationError("Note content is required.")

        return MemberNote.objects.create(
            tenant_id=tenant_id,
            member=member,
            content=content,
            is_system=False,
            created_by_id=actor_user_id,
        )

    @staticmethod
    @transaction.atomic
    def set_status(
        *,
        tenant_id: UUID,
        member_id: UUID,
        status: str,
        actor_user_id: int | None = None,
    ) -> Member:
        """Manual ACTIVE/INACTIVE switch. INTEGRATED is only reached by completing the pathway."""
        if status not in MemberService.MANUAL_STATUSES:
            raise ValidationError("Status can only be set to ACTIVE or INACTIVE.")

        member = MemberService._get_scoped(tenant_id=tenant_id, member_id=member_id)
        if member.status == status:
            return member

        previous = member.status
        member.status = status
        member.save(update_fields=["status", "updated_at"])
        MemberService._system_note(member, f"Status changed from {previous} to {status}")

        AuditService.log(
            event_code="member.status_changed",
            entity_type="Member",
            entity_id=member.id,
            tenant_id=tenant_id,
            actor_user_id=actor_user_id,
            metadata={"from": previous, "to": status},
        )
        return member

    # -------------------------
    # Progression
    # -------------------------
    @staticmethod
    @transaction.atomic
    def move_member(
        *,
        tenant_id: UUID,
        member_id: UUID,
        stage_id: UUID,
        expected_stage_id: Optional[UUID] = None,
        actor_user_id: int | None = None,
    ) -> TransitionResult:
        """
        Manual move to any stage of the member's pathway (board drag-and-drop).
        A stale `expected_stage_id` results in Outcome.CONFLICT and changes nothing.
        """
        MemberService._get_scoped(tenant_id=tenant_id, member_id=member_id)
        try:
            result = ProgressionService.move_member(
                tenant_id=tenant_id,
                member_id=member_id,
                stage_id=stage_id,
                expected_stage_id=expected_stage_id,
                assignee_id=actor_user_id,
            )
        except ConfigurationError as exc:
            raise ValidationError(str(exc))

        MemberService._audit_transition(
            tenant_id=tenant_id,
            member_id=member_id,
            result=result,
            event_code="member.moved",
            actor_user_id=actor_user_id,
        )
        return result

    @staticmethod
    @transaction.atomic
    def advance_member(
        *,
        tenant_id: UUID,
        member_id: UUID,
        expected_stage_id: Optional[UUID] = None,
        actor_user_id: int | None = None,
    ) -> TransitionResult:
        """Moves the member one stage forward, or completes the pathway from the last stage."""
        MemberService._get_scoped(tenant_id=tenant_id, member_id=member_id)
        try:
            result = ProgressionService.advance_member(
                tenant_id=tenant_id,
                member_id=member_id,
                expected_stage_id=expected_stage_id,
                assignee_id=actor_user_id,
            )
        except ProgressionError as exc:
            raise ValidationError(str(exc))

        MemberService._audit_transition(
            tenant_id=tenant_id,
            member_id=member_id,
            result=result,
            event_code="member.advanced",
            actor_user_id=actor_user_id,
        )
        return result
