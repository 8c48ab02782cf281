from datetime import date

from cm_core.automation.evaluator import TaskDraft, evaluate
from cm_core.progression.domain import AutomationRuleSnapshot, MemberSnapshot

TODAY = date(2024, 2, 28)


def _member(stage_id):
    return MemberSnapshot(id="m1", pathway="NEWCOMER", current_stage_id=stage_id, status="ACTIVE")


def _rule(rule_id, stage_id, description, days, priority="MEDIUM", enabled=True):
    return AutomationRuleSnapshot(rule_id, stage_id, description, days, priority, enabled)


def test_one_draft_per_matching_enabled_rule_in_rule_order():
    rules = [
        _rule("r1", "nc5", "Connect Group Introduction Email", 3, "HIGH"),
        _rule("r2", "nc3", "Call to confirm Lunch attendance", 2),
        _rule("r3", "nc5", "Text group leader", 1, "LOW"),
        _rule("r4", "nc5", "Old welcome letter", 1, enabled=False),
    ]

    drafts = evaluate(_member("nc5"), rules, assigned_to_id=9, today=TODAY)

    assert drafts == [
        TaskDraft("m1", "Connect Group Introduction Email", date(2024, 3, 2), "HIGH", 9, "r1"),
        TaskDraft("m1", "Text group leader", date(2024, 2, 29), "LOW", 9, "r3"),
    ]


def test_no_matching_rules_yields_nothing():
    rules = [_rule("r1", "nc3", "Call", 2)]

    assert evaluate(_member("nc1"), rules, assigned_to_id=None, today=TODAY) == []
    assert evaluate(_member("nc1"), [], assigned_to_id=None, today=TODAY) == []


def test_zero_days_due_is_today():
    drafts = evaluate(_member("nc3"), [_rule("r1", "nc3", "Same-day call", 0)], assigned_to_id=None, today=TODAY)

    assert drafts[0].due_date == TODAY
