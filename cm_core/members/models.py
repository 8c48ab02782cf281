# cm_core/members/models.py
from django.db import models

from cm_core.common.models import ScopedModel
from cm_core.members.constants import MemberStatus
from cm_core.pathways.constants import Pathway
from cm_core.pathways.models import Stage


class Member(ScopedModel):
    """
    A person moving through one pathway.

    `current_stage` always belongs to `pathway`. Stage changes go through the
    progression engine, which also stamps `last_stage_change_date`.
    """
    first_name = models.CharField(max_length=128)
    last_name = models.CharField(max_length=128, blank=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=32, blank=True)

    pathway = models.CharField(max_length=32, choices=Pathway.choices, db_index=True)
    current_stage = models.ForeignKey(Stage, on_delete=models.PROTECT, related_name="members")
    last_stage_change_date = models.DateTimeField(null=True, blank=True)

    status = models.CharField(
        max_length=16,
        choices=MemberStatus.choices,
        default=MemberStatus.ACTIVE,
        db_index=True,
    )

    # opaque user ids owned by the auth collaborator
    assigned_to_id = models.BigIntegerField(null=True, blank=True, db_index=True)
    created_by_id = models.BigIntegerField(null=True, blank=True)

    joined_date = models.DateField(null=True, blank=True)

    class Meta:
        db_table = "members_member"
        indexes = [
            models.Index(fields=["tenant_id", "pathway", "status"]),
            models.Index(fields=["tenant_id", "current_stage"]),
            models.Index(fields=["tenant_id", "last_name", "first_name"]),
        ]

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __str__(self) -> str:
        return self.full_name


class MemberNote(ScopedModel):
    """
    Append-only, human-readable trail on a member. System notes explain every automatic change.
    """
    member = models.ForeignKey(Member, on_delete=models.CASCADE, related_name="notes")
    content = models.TextField()
    is_system = models.BooleanField(default=False)
    created_by_id = models.BigIntegerField(null=True, blank=True)

    class Meta:
        db_table = "members_note"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["member", "created_at"]),
        ]

    def __str__(self) -> str:
        return self.content[:80]
