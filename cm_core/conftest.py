import uuid

import pytest

from cm_core.automation.services import AutomationRuleService
from cm_core.members.services import MemberService
from cm_core.pathways.constants import AutoAdvanceType, Pathway
from cm_core.pathways.services import StageService
from cm_core.tasks.constants import TaskPriority

NEWCOMER_STAGE_NAMES = ["Sunday Exp", "Tent", "Lunch", "Social", "Connect Grp", "Growth Track", "Serve"]


@pytest.fixture
def tenant_id():
    return uuid.UUID("00000000-0000-0000-0000-000000000001")


@pytest.fixture
def other_tenant_id():
    return uuid.UUID("00000000-0000-0000-0000-000000000002")


@pytest.fixture
def actor_user_id():
    return 101


@pytest.fixture
def newcomer_stages(db, tenant_id):
    """
    Newcomer pathway: Lunch advances on a "Lunch" task, Social after 5 days in stage.
    Returns stages in order, index 0 is "Sunday Exp".
    """
    rules = {
        "Lunch": (AutoAdvanceType.TASK_COMPLETED, "Lunch"),
        "Social": (AutoAdvanceType.TIME_IN_STAGE, "5"),
    }
    stages = []
    for name in NEWCOMER_STAGE_NAMES:
        rule_type, rule_value = rules.get(name, ("", ""))
        stages.append(
            StageService.create_stage(
                tenant_id=tenant_id,
                pathway=Pathway.NEWCOMER,
                name=name,
                auto_advance_type=rule_type,
                auto_advance_value=rule_value,
            )
        )
    return stages


@pytest.fixture
def lunch_rules(newcomer_stages, tenant_id):
    lunch = newcomer_stages[2]
    return [
        AutomationRuleService.create_rule(
            tenant_id=tenant_id,
            stage_id=lunch.id,
            task_description="Send Lunch invitation email",
            days_due=3,
            priority=TaskPriority.HIGH,
        ),
        AutomationRuleService.create_rule(
            tenant_id=tenant_id,
            stage_id=lunch.id,
            task_description="Call to confirm Lunch attendance",
            days_due=2,
            priority=TaskPriority.MEDIUM,
        ),
    ]


@pytest.fixture
def make_member(tenant_id, newcomer_stages):
    def _make(stage_index: int = 0, **kwargs):
        kwargs.setdefault("first_name", "Jamie")
        kwargs.setdefault("last_name", "Rivera")
        return MemberService.create_member(
            tenant_id=tenant_id,
            pathway=Pathway.NEWCOMER,
            stage_id=newcomer_stages[stage_index].id,
            **kwargs,
        )
    return _make
