# cm_core/automation/evaluator.py
"""
Rule evaluator: which tasks does entering a stage create?

Pure function over plain values. Accepts Django AutomationRule rows or the
engine's AutomationRuleSnapshot alike (anything exposing id, stage_id,
task_description, days_due, priority, enabled).
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Iterable, Optional


@dataclass(frozen=True)
class TaskDraft:
    member_id: Any
    description: str
    due_date: date
    priority: str
    assigned_to_id: Optional[int]
    automation_rule_id: Any = None


def evaluate(member, rules: Iterable, *, assigned_to_id: Optional[int], today: date) -> list[TaskDraft]:
    """
    One draft per enabled rule targeting `member.current_stage_id`, in rule order.

    `member.current_stage_id` must already be the post-transition stage.
    Due dates are calendar days from `today`; the assignee comes from the caller.
    """
    return [
        TaskDraft(
            member_id=member.id,
            description=rule.task_description,
            due_date=today + timedelta(days=int(rule.days_due)),
            priority=rule.priority,
            assigned_to_id=assigned_to_id,
            automation_rule_id=rule.id,
        )
        for rule in rules
        if rule.enabled and str(rule.stage_id) == str(member.current_stage_id)
    ]
