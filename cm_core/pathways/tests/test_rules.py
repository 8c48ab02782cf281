import pytest

from cm_core.pathways.constants import AutoAdvanceType
from cm_core.pathways.rules import (
    TaskCompletedRule,
    TimeInStageRule,
    parse_auto_advance_rule,
    serialize_auto_advance_rule,
)


def test_parse_task_completed_rule():
    rule = parse_auto_advance_rule(AutoAdvanceType.TASK_COMPLETED, "Lunch")

    assert rule == TaskCompletedRule("Lunch")
    assert rule.matches("Call to confirm LUNCH attendance")
    assert not rule.matches("Send welcome email")


@pytest.mark.parametrize("value, days", [("5", 5), (5, 5), (" 7 ", 7), ("5.5", 6), (0.2, 1)])
def test_parse_time_in_stage_rule(value, days):
    assert parse_auto_advance_rule(AutoAdvanceType.TIME_IN_STAGE, value) == TimeInStageRule(days)


@pytest.mark.parametrize(
    "rule_type, value",
    [
        ("", "x"),
        (None, None),
        (AutoAdvanceType.TASK_COMPLETED, ""),
        (AutoAdvanceType.TASK_COMPLETED, "   "),
        (AutoAdvanceType.TIME_IN_STAGE, "soon"),
        (AutoAdvanceType.TIME_IN_STAGE, "0"),
        (AutoAdvanceType.TIME_IN_STAGE, "-2"),
        (AutoAdvanceType.TIME_IN_STAGE, "inf"),
        (AutoAdvanceType.TIME_IN_STAGE, True),
        ("FORM_SUBMITTED", "x"),
    ],
)
def test_empty_or_malformed_rules_parse_to_none(rule_type, value):
    assert parse_auto_advance_rule(rule_type, value) is None


def test_serialize_round_trips_storage_pair():
    assert serialize_auto_advance_rule(TimeInStageRule(5)) == (AutoAdvanceType.TIME_IN_STAGE, "5")
    assert serialize_auto_advance_rule(TaskCompletedRule("Lunch")) == (AutoAdvanceType.TASK_COMPLETED, "Lunch")
    assert serialize_auto_advance_rule(None) == ("", "")
