# cm_core/audit/subscribers.py
from uuid import UUID

from cm_core.audit.services import AuditService
from cm_core.common.events import subscribe


def _log_member_event(event_code: str, payload: dict) -> None:
    AuditService.log(
        event_code=event_code,
        entity_type="Member",
        entity_id=UUID(payload["member_id"]),
        tenant_id=UUID(payload["tenant_id"]),
        actor_user_id=None,
        metadata=payload,
    )


@subscribe("progression.stage_advanced")
def on_stage_advanced(payload: dict) -> None:
    _log_member_event("member.auto_advanced", payload)


@subscribe("progression.pathway_completed")
def on_pathway_completed(payload: dict) -> None:
    _log_member_event("member.pathway_completed", payload)


@subscribe("progression.task_created")
def on_task_created(payload: dict) -> None:
    _log_member_event("member.automation_task_created", payload)
