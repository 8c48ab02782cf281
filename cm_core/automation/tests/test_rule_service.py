import pytest
from django.core.exceptions import ValidationError

from cm_core.audit.models import AuditEvent
from cm_core.automation.models import AutomationRule
from cm_core.automation.selectors import list_rules, rules_for_stage
from cm_core.automation.services import AutomationRuleService
from cm_core.pathways.models import Stage
from cm_core.tasks.constants import TaskPriority

pytestmark = pytest.mark.django_db


def test_create_rule_defaults(tenant_id, newcomer_stages, actor_user_id):
    rule = AutomationRuleService.create_rule(
        tenant_id=tenant_id,
        stage_id=newcomer_stages[4].id,
        task_description="  Connect Group Introduction Email ",
        days_due=3,
        actor_user_id=actor_user_id,
    )

    assert rule.task_description == "Connect Group Introduction Email"
    assert rule.priority == TaskPriority.MEDIUM
    assert rule.enabled is True
    assert AuditEvent.objects.get(entity_id=rule.id).event_code == "automation_rule.created"


def test_create_rule_requires_stage_in_tenant(other_tenant_id, newcomer_stages):
    with pytest.raises(Stage.DoesNotExist):
        AutomationRuleService.create_rule(
            tenant_id=other_tenant_id,
            stage_id=newcomer_stages[0].id,
            task_description="Welcome call",
            days_due=1,
        )


@pytest.mark.parametrize(
    "kwargs",
    [
        {"task_description": "   ", "days_due": 1},
        {"task_description": "Call", "days_due": -1},
        {"task_description": "Call", "days_due": 1, "priority": "URGENT"},
    ],
)
def test_create_rule_validation(tenant_id, newcomer_stages, kwargs):
    with pytest.raises(ValidationError):
        AutomationRuleService.create_rule(tenant_id=tenant_id, stage_id=newcomer_stages[0].id, **kwargs)


def test_toggle_is_soft_and_idempotent(tenant_id, lunch_rules):
    rule = lunch_rules[0]

    AutomationRuleService.toggle_rule(tenant_id=tenant_id, rule_id=rule.id, enabled=False)
    AutomationRuleService.toggle_rule(tenant_id=tenant_id, rule_id=rule.id, enabled=False)

    rule.refresh_from_db()
    assert rule.enabled is False
    assert AuditEvent.objects.filter(entity_id=rule.id, event_code="automation_rule.disabled").count() == 1
    # still part of the rule set
    assert list(rules_for_stage(tenant_id=tenant_id, stage_id=rule.stage_id)) == lunch_rules
    assert list(list_rules(tenant_id=tenant_id, enabled_only=True)) == [lunch_rules[1]]


def test_update_and_delete_rule(tenant_id, lunch_rules):
    rule = lunch_rules[1]

    AutomationRuleService.update_rule(
        tenant_id=tenant_id,
        rule_id=rule.id,
        data={"days_due": 4, "priority": TaskPriority.HIGH, "stage_id": "ignored"},
    )
    rule.refresh_from_db()
    assert (rule.days_due, rule.priority) == (4, TaskPriority.HIGH)

    AutomationRuleService.delete_rule(tenant_id=tenant_id, rule_id=rule.id)
    assert not AutomationRule.objects.filter(id=rule.id).exists()
    assert AuditEvent.objects.filter(entity_id=rule.id, event_code="automation_rule.deleted").exists()
