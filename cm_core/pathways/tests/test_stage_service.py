import pytest
from django.core.exceptions import ValidationError

from cm_core.audit.models import AuditEvent
from cm_core.pathways.constants import AutoAdvanceType, Pathway
from cm_core.pathways.models import Stage
from cm_core.pathways.rules import TaskCompletedRule, TimeInStageRule
from cm_core.pathways.selectors import list_stages, list_stages_with_counts
from cm_core.pathways.services import StageService

pytestmark = pytest.mark.django_db


def _names(tenant_id, pathway=Pathway.NEWCOMER):
    return [s.name for s in list_stages(tenant_id=tenant_id, pathway=pathway)]


def _orders(tenant_id, pathway=Pathway.NEWCOMER):
    return [s.order for s in list_stages(tenant_id=tenant_id, pathway=pathway)]


def test_create_appends_with_contiguous_orders(tenant_id):
    for name in ("Sunday Exp", "Tent", "Lunch"):
        StageService.create_stage(tenant_id=tenant_id, pathway=Pathway.NEWCOMER, name=name)

    assert _names(tenant_id) == ["Sunday Exp", "Tent", "Lunch"]
    assert _orders(tenant_id) == [1, 2, 3]
    assert AuditEvent.objects.filter(tenant_id=tenant_id, event_code="stage.created").count() == 3


def test_insert_at_occupied_order_shifts_later_stages(tenant_id, newcomer_stages):
    StageService.create_stage(tenant_id=tenant_id, pathway=Pathway.NEWCOMER, name="Prayer", order=2)

    assert _names(tenant_id)[:4] == ["Sunday Exp", "Prayer", "Tent", "Lunch"]
    assert _orders(tenant_id) == list(range(1, 9))


def test_stage_names_are_unique_per_pathway(tenant_id, newcomer_stages):
    with pytest.raises(ValidationError):
        StageService.create_stage(tenant_id=tenant_id, pathway=Pathway.NEWCOMER, name="Tent")

    # same name on the other pathway is fine
    StageService.create_stage(tenant_id=tenant_id, pathway=Pathway.NEW_BELIEVER, name="Tent")


@pytest.mark.parametrize(
    "rule_type, rule_value",
    [
        (AutoAdvanceType.TIME_IN_STAGE, "0"),
        (AutoAdvanceType.TIME_IN_STAGE, "a week"),
        (AutoAdvanceType.TASK_COMPLETED, " "),
        ("FORM_SUBMITTED", "x"),
    ],
)
def test_invalid_auto_advance_rule_is_rejected(tenant_id, rule_type, rule_value):
    with pytest.raises(ValidationError):
        StageService.create_stage(
            tenant_id=tenant_id,
            pathway=Pathway.NEWCOMER,
            name="Lunch",
            auto_advance_type=rule_type,
            auto_advance_value=rule_value,
        )


def test_update_sets_and_clears_rule(tenant_id, newcomer_stages):
    tent = newcomer_stages[1]

    StageService.set_auto_advance_rule(tenant_id=tenant_id, stage_id=tent.id, rule=TimeInStageRule(7))
    tent.refresh_from_db()
    assert tent.auto_advance_rule == TimeInStageRule(7)

    StageService.update_stage(tenant_id=tenant_id, stage_id=tent.id, data={"auto_advance_type": ""})
    tent.refresh_from_db()
    assert tent.auto_advance_rule is None
    assert tent.auto_advance_value == ""


def test_update_moves_stage_and_renormalizes(tenant_id, newcomer_stages):
    serve = newcomer_stages[-1]

    StageService.update_stage(tenant_id=tenant_id, stage_id=serve.id, data={"order": 1, "name": "Serve Team"})

    assert _names(tenant_id)[:2] == ["Serve Team", "Sunday Exp"]
    assert _orders(tenant_id) == list(range(1, 8))


def test_delete_refused_while_members_are_in_stage(tenant_id, newcomer_stages, make_member):
    make_member(stage_index=1)

    with pytest.raises(ValidationError):
        StageService.delete_stage(tenant_id=tenant_id, stage_id=newcomer_stages[1].id)
    assert Stage.objects.filter(id=newcomer_stages[1].id).exists()


def test_delete_renormalizes_orders(tenant_id, newcomer_stages):
    StageService.delete_stage(tenant_id=tenant_id, stage_id=newcomer_stages[3].id)

    assert "Social" not in _names(tenant_id)
    assert _orders(tenant_id) == list(range(1, 7))


def test_reorder_requires_every_stage_exactly_once(tenant_id, newcomer_stages):
    ids = [s.id for s in newcomer_stages]

    with pytest.raises(ValidationError):
        StageService.reorder_stages(tenant_id=tenant_id, pathway=Pathway.NEWCOMER, stage_ids=ids[:-1])
    with pytest.raises(ValidationError):
        StageService.reorder_stages(tenant_id=tenant_id, pathway=Pathway.NEWCOMER, stage_ids=ids + [ids[0]])

    StageService.reorder_stages(tenant_id=tenant_id, pathway=Pathway.NEWCOMER, stage_ids=list(reversed(ids)))
    assert _names(tenant_id)[0] == "Serve"
    assert _orders(tenant_id) == list(range(1, 8))


def test_stage_counts(tenant_id, newcomer_stages, lunch_rules, make_member):
    make_member(stage_index=2)
    make_member(stage_index=2, first_name="Sam")

    lunch = list_stages_with_counts(tenant_id=tenant_id, pathway=Pathway.NEWCOMER).get(name="Lunch")

    assert lunch.member_count == 2
    assert lunch.rule_count == 2
    assert lunch.auto_advance_rule == TaskCompletedRule("Lunch")


def test_stages_are_tenant_scoped(tenant_id, other_tenant_id, newcomer_stages):
    assert _names(other_tenant_id) == []


def test_stage_order_is_unique_per_pathway(tenant_id, newcomer_stages):
    constraint = next(c for c in Stage._meta.constraints if c.name == "uq_stage_order_per_pathway")
    assert constraint.fields == ("tenant_id", "pathway", "order")

    StageService.create_stage(tenant_id=tenant_id, pathway=Pathway.NEWCOMER, name="Prayer", order=1)
    StageService.update_stage(tenant_id=tenant_id, stage_id=newcomer_stages[6].id, data={"order": 1})
    StageService.delete_stage(tenant_id=tenant_id, stage_id=newcomer_stages[3].id)

    orders = _orders(tenant_id)
    assert len(orders) == len(set(orders)) == 7
    assert orders == list(range(1, 8))
