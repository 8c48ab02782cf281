# cm_core/pathways/rules.py
"""
Auto-advance rules attached to a stage.

A stage carries at most one rule. The rule is a closed union of two variants:

    TaskCompletedRule(keyword)  - completing a task whose description contains
                                  `keyword` (case-insensitive) advances the member
    TimeInStageRule(days)       - spending `days` whole days in the stage advances
                                  the member

Storage keeps the rule as a (type, value) string pair; `parse_auto_advance_rule`
turns that pair into a variant, or None when the pair is empty or malformed.
A malformed rule behaves exactly like "no rule".
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from cm_core.pathways.constants import AutoAdvanceType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TaskCompletedRule:
    keyword: str

    @property
    def type(self) -> str:
        return AutoAdvanceType.TASK_COMPLETED

    def matches(self, description: str) -> bool:
        return self.keyword.lower() in (description or "").lower()

    def describe(self) -> str:
        return f'Task "{self.keyword}"'


@dataclass(frozen=True)
class TimeInStageRule:
    days: int

    @property
    def type(self) -> str:
        return AutoAdvanceType.TIME_IN_STAGE

    def is_due(self, elapsed_days: int) -> bool:
        return elapsed_days >= self.days

    def describe(self) -> str:
        return f"After {self.days} days"


AutoAdvanceRule = Union[TaskCompletedRule, TimeInStageRule]


def _parse_days(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        days = float(str(value).strip())
    except (TypeError, ValueError):
        return None
    if not math.isfinite(days) or days <= 0:
        return None
    # whole elapsed days are compared against the threshold, so 5.5 behaves as 6
    return math.ceil(days)


def parse_auto_advance_rule(rule_type, value) -> Optional[AutoAdvanceRule]:
    if not rule_type:
        return None

    if rule_type == AutoAdvanceType.TASK_COMPLETED:
        keyword = "" if value is None else str(value)
        if not keyword.strip():
            logger.warning("Ignoring TASK_COMPLETED rule with an empty keyword")
            return None
        return TaskCompletedRule(keyword=keyword)

    if rule_type == AutoAdvanceType.TIME_IN_STAGE:
        days = _parse_days(value)
        if days is None:
            logger.warning("Ignoring TIME_IN_STAGE rule with malformed day threshold %r", value)
            return None
        return TimeInStageRule(days=days)

    logger.warning("Ignoring auto-advance rule of unknown type %r", rule_type)
    return None


def serialize_auto_advance_rule(rule: Optional[AutoAdvanceRule]) -> Tuple[str, str]:
    if rule is None:
        return "", ""
    if isinstance(rule, TaskCompletedRule):
        return AutoAdvanceType.TASK_COMPLETED, rule.keyword
    return AutoAdvanceType.TIME_IN_STAGE, str(rule.days)
