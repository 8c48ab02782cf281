# cm_core/members/selectors.py
from __future__ import annotations

from typing import Optional
from uuid import UUID

from django.db.models import Count, Q, QuerySet

from cm_core.members.constants import MemberStatus
from cm_core.members.models import Member, MemberNote


def get_member(*, tenant_id: UUID, member_id: UUID) -> Member:
    return Member.objects.select_related("current_stage").get(id=member_id, tenant_id=tenant_id)


def list_members(
    *,
    tenant_id: UUID,
    pathway: Optional[str] = None,
    stage_id: Optional[UUID] = None,
    status: Optional[str] = None,
    assigned_to_id: Optional[int] = None,
    search: Optional[str] = None,
) -> QuerySet[Member]:
    qs = Member.objects.for_tenant(tenant_id).select_related("current_stage")

    if pathway:
        qs = qs.filter(pathway=pathway)
    if stage_id:
        qs = qs.filter(current_stage_id=stage_id)
    if status:
        qs = qs.filter(status=status)
    if assigned_to_id:
        qs = qs.filter(assigned_to_id=assigned_to_id)
    if search:
        term = search.strip()
        qs = qs.filter(
            Q(first_name__icontains=term)
            | Q(last_name__icontains=term)
            | Q(email__icontains=term)
            | Q(phone__icontains=term)
        )

    return qs.order_by("last_name", "first_name", "id")


def list_notes(*, tenant_id: UUID, member_id: UUID) -> QuerySet[MemberNote]:
    """Newest first."""
    return MemberNote.objects.for_tenant(tenant_id).filter(member_id=member_id).order_by("-created_at")


def stage_board(*, tenant_id: UUID, pathway: str) -> dict:
    """Member count per stage id for the pathway board, active members only."""
    rows = (
        Member.objects.for_tenant(tenant_id).filter(pathway=pathway)
        .exclude(status=MemberStatus.INTEGRATED)
        .values("current_stage_id")
        .annotate(total=Count("id"))
    )
    return {row["current_stage_id"]: row["total"] for row in rows}
