import uuid
from datetime import date

import pytest

from cm_core.audit.models import AuditEvent
from cm_core.audit.services import AuditService


@pytest.mark.django_db
def test_log_stores_json_safe_metadata(tenant_id):
    entity_id = uuid.uuid4()
    stage_id = uuid.uuid4()

    record = AuditService.log(
        event_code="member.moved",
        entity_type="Member",
        entity_id=entity_id,
        tenant_id=tenant_id,
        actor_user_id=7,
        metadata={"to_stage_id": stage_id, "on": date(2024, 3, 10)},
    )

    assert record.metadata == {"to_stage_id": str(stage_id), "on": "2024-03-10"}
    stored = AuditEvent.objects.get(id=record.id)
    assert stored.metadata["to_stage_id"] == str(stage_id)
    assert stored.actor_user_id == 7


@pytest.mark.django_db
def test_log_defaults_to_empty_metadata_and_no_actor(tenant_id):
    record = AuditService.log(
        event_code="member.auto_advanced",
        entity_type="Member",
        entity_id=uuid.uuid4(),
        tenant_id=tenant_id,
    )

    assert record.metadata == {}
    assert record.actor_user_id is None
    assert AuditEvent.objects.for_tenant(tenant_id).count() == 1
