import uuid

import pytest

from cm_core.audit.models import AuditEvent
from cm_core.audit.selectors import list_entity_events
from cm_core.common.events import handlers_for, publish, subscribe

pytestmark = pytest.mark.django_db


def test_progression_events_are_audited(tenant_id):
    member_id = uuid.uuid4()

    publish(
        "progression.pathway_completed",
        {
            "tenant_id": str(tenant_id),
            "member_id": str(member_id),
            "trigger": "TIME_IN_STAGE",
            "reason": "Pathway completed - marked as integrated after 9 days in Serve",
        },
    )

    events = list(list_entity_events(tenant_id=tenant_id, entity_type="Member", entity_id=member_id))
    assert [e.event_code for e in events] == ["member.pathway_completed"]
    assert events[0].actor_user_id is None
    assert events[0].metadata["trigger"] == "TIME_IN_STAGE"


def test_subscribe_registers_a_handler_once():
    def handler(payload):
        return None

    subscribe("test.event")(handler)
    subscribe("test.event")(handler)

    assert handlers_for("test.event") == [handler]


def test_unsubscribed_event_is_ignored():
    assert publish("nobody.listens", {"tenant_id": "x"}) == 0

    assert AuditEvent.objects.count() == 0
