# cm_core/progression/triggers.py
"""
Auto-advance evaluation.

Both checks are pure: they look at a member snapshot, the ordered stages of
its pathway and either a just-completed task or the current time, and return
an AdvanceDecision or None.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Sequence

from cm_core.members.constants import MemberStatus
from cm_core.pathways.rules import TaskCompletedRule, TimeInStageRule
from cm_core.progression.domain import MemberSnapshot, StageSnapshot, TaskSnapshot, Trigger
from cm_core.progression.exceptions import PathwayMismatch, StageNotFound

SECONDS_PER_DAY = 24 * 60 * 60
COMPLETION_NOTE = "Pathway completed - marked as integrated"


@dataclass(frozen=True)
class AdvanceDecision:
    member_id: Any
    current_stage: StageSnapshot
    next_stage: Optional[StageSnapshot]
    trigger: Trigger
    reason: str

    @property
    def completes_pathway(self) -> bool:
        return self.next_stage is None


def elapsed_days(since: datetime, now: datetime) -> int:
    """Whole days since `since`, any partial day counting as one. Never negative."""
    seconds = (now - since).total_seconds()
    if seconds <= 0:
        return 0
    return math.ceil(seconds / SECONDS_PER_DAY)


def locate_stage(member: MemberSnapshot, stages: Sequence[StageSnapshot]) -> int:
    for index, stage in enumerate(stages):
        if stage.id == member.current_stage_id:
            if stage.pathway != member.pathway:
                raise PathwayMismatch(
                    f"Stage {stage.id} belongs to {stage.pathway}, member {member.id} is on {member.pathway}",
                    {"member_id": str(member.id), "stage_id": str(stage.id)},
                )
            return index
    raise StageNotFound(
        f"Stage {member.current_stage_id} of member {member.id} is not in the {member.pathway} pathway",
        {"member_id": str(member.id), "stage_id": str(member.current_stage_id), "pathway": member.pathway},
    )


def _next_stage(stages: Sequence[StageSnapshot], index: int) -> Optional[StageSnapshot]:
    return stages[index + 1] if index + 1 < len(stages) else None


def check_task_completion(
    member: MemberSnapshot,
    stages: Sequence[StageSnapshot],
    task: TaskSnapshot,
) -> Optional[AdvanceDecision]:
    if member.status == MemberStatus.INTEGRATED:
        return None

    index = locate_stage(member, stages)
    current = stages[index]
    rule = current.auto_advance_rule
    if not isinstance(rule, TaskCompletedRule) or not rule.matches(task.description):
        return None

    next_stage = _next_stage(stages, index)
    if next_stage is None:
        reason = f'{COMPLETION_NOTE} upon completing task: "{task.description}"'
    else:
        reason = f'Auto-advanced to {next_stage.name} upon completing task: "{task.description}"'

    return AdvanceDecision(
        member_id=member.id,
        current_stage=current,
        next_stage=next_stage,
        trigger=Trigger.TASK_COMPLETED,
        reason=reason,
    )


def check_time_in_stage(
    member: MemberSnapshot,
    stages: Sequence[StageSnapshot],
    now: datetime,
) -> Optional[AdvanceDecision]:
    if member.status == MemberStatus.INTEGRATED or member.last_stage_change_date is None:
        return None

    index = locate_stage(member, stages)
    current = stages[index]
    rule = current.auto_advance_rule
    if not isinstance(rule, TimeInStageRule):
        return None

    days = elapsed_days(member.last_stage_change_date, now)
    if not rule.is_due(days):
        return None

    next_stage = _next_stage(stages, index)
    if next_stage is None:
        reason = f"{COMPLETION_NOTE} after {days} days in {current.name}"
    else:
        reason = f"Auto-advanced to {next_stage.name} after {days} days in {current.name}"

    return AdvanceDecision(
        member_id=member.id,
        current_stage=current,
        next_stage=next_stage,
        trigger=Trigger.TIME_IN_STAGE,
        reason=reason,
    )
