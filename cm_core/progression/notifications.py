# cm_core/progression/notifications.py
from __future__ import annotations

from uuid import UUID

from cm_core.common.events import publish
from cm_core.progression.domain import MemberSnapshot, ProgressionEvent


def _id(value) -> str | None:
    return None if value is None else str(value)


class EventBusNotifier:
    """
    Notification sink that republishes engine events on the in-process bus
    as `progression.<kind>`. Payloads are ID-based strings.
    """

    def __init__(self, tenant_id: UUID):
        self.tenant_id = tenant_id

    def __call__(self, member: MemberSnapshot, event: ProgressionEvent) -> None:
        publish(
            f"progression.{event.kind.value}",
            {
                "tenant_id": str(self.tenant_id),
                "member_id": str(member.id),
                "pathway": member.pathway,
                "status": member.status,
                "trigger": event.trigger.value,
                "from_stage_id": _id(event.from_stage_id),
                "to_stage_id": _id(event.to_stage_id),
                "task_id": _id(event.task_id),
                "reason": event.reason,
                "occurred_at": event.occurred_at.isoformat(),
            },
        )
