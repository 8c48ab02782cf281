# cm_core/progression/engine.py
from __future__ import annotations

import logging
from contextlib import contextmanager, nullcontext
from typing import Any, Callable, Dict, List, Optional, Tuple

from cm_core.automation.evaluator import TaskDraft, evaluate
from cm_core.members.constants import MemberStatus
from cm_core.progression.domain import (
    EventKind,
    MemberFilter,
    MemberPatch,
    MemberSnapshot,
    Outcome,
    ProgressionEvent,
    StageSnapshot,
    SweepReport,
    TaskCompletion,
    TaskPatch,
    TaskSnapshot,
    TransitionResult,
    Trigger,
)
from cm_core.progression.exceptions import (
    ConfigurationError,
    MemberNotFound,
    PathwayMismatch,
    PersistenceError,
    ProgressionError,
)
from cm_core.progression.interfaces import (
    AutomationRuleSet,
    Clock,
    MemberRepository,
    NotificationSink,
    StageCatalog,
    TaskRepository,
)
from cm_core.progression.triggers import (
    COMPLETION_NOTE,
    AdvanceDecision,
    check_task_completion,
    check_time_in_stage,
    locate_stage,
)

logger = logging.getLogger(__name__)

SYSTEM_NOTE_PREFIX = "[System] "


def _same(a: Any, b: Any) -> bool:
    return a is not None and b is not None and str(a) == str(b)


class ProgressionEngine:
    """
    The only path that changes a member's stage or completes a pathway.

    Notes:
    - Every write is guarded by the stage id the caller expects the member to be in
      (compare-and-swap). A failed guard is a logged no-op returning Outcome.CONFLICT.
    - A stage write, its member note and the automation tasks it spawns share one unit
      of work. Each task write runs in a nested unit: a failed one is logged and listed
      in `failed_tasks` without undoing the transition.
    - Notifications are delivered after the outermost unit of work exits, and only when
      it succeeded. Sink failures are logged and ignored.
    - Instances keep per-call bookkeeping; build one engine per thread.
    """

    def __init__(
        self,
        *,
        members: MemberRepository,
        tasks: TaskRepository,
        stages: StageCatalog,
        rules: AutomationRuleSet,
        clock: Clock,
        notifier: Optional[NotificationSink] = None,
        atomic: Callable[[], Any] = nullcontext,
    ):
        self.members = members
        self.tasks = tasks
        self.stages = stages
        self.rules = rules
        self.clock = clock
        self.notifier = notifier
        self._atomic = atomic
        self._depth = 0
        self._pending: List[Tuple[MemberSnapshot, ProgressionEvent]] = []

    # -------------------------
    # Unit of work + notifications
    # -------------------------
    @contextmanager
    def _unit_of_work(self):
        outermost = self._depth == 0
        self._depth += 1
        try:
            with self._atomic():
                yield
        except BaseException:
            if outermost:
                self._pending.clear()
            raise
        finally:
            self._depth -= 1
        if outermost:
            self._flush()

    def _queue(self, member: MemberSnapshot, event: ProgressionEvent) -> None:
        self._pending.append((member, event))

    def _flush(self) -> None:
        pending, self._pending = self._pending, []
        if self.notifier is None:
            return
        for member, event in pending:
            try:
                self.notifier(member, event)
            except Exception:
                logger.exception(
                    "Notification sink failed for %s event of member %s", event.kind.value, event.member_id
                )

    # -------------------------
    # Internal helpers
    # -------------------------
    @staticmethod
    def _find_stage(stages: List[StageSnapshot], stage_id: Any, member: MemberSnapshot) -> StageSnapshot:
        for stage in stages:
            if _same(stage.id, stage_id):
                return stage
        raise PathwayMismatch(
            f"Stage {stage_id} is not part of the {member.pathway} pathway",
            {"member_id": str(member.id), "stage_id": str(stage_id), "pathway": member.pathway},
        )

    def _conflict(self, member: MemberSnapshot, expected_stage_id: Any, target_stage_id: Any, trigger: Trigger) -> TransitionResult:
        logger.info(
            "Skipping %s transition of member %s: expected stage %s, member is in %s (no-op)",
            trigger.value,
            member.id,
            expected_stage_id,
            member.current_stage_id,
        )
        return TransitionResult(
            outcome=Outcome.CONFLICT,
            member=member,
            trigger=trigger,
            from_stage_id=expected_stage_id,
            to_stage_id=target_stage_id,
        )

    def _create_automation_tasks(
        self,
        member: MemberSnapshot,
        stage: StageSnapshot,
        *,
        assignee_id: Optional[int],
        trigger: Trigger,
    ) -> Tuple[List[TaskSnapshot], List[TaskDraft]]:
        rules = self.rules.rules_for(stage.id)
        assignee = assignee_id if assignee_id is not None else member.assigned_to_id
        drafts = evaluate(member, rules, assigned_to_id=assignee, today=self.clock.today())

        created: List[TaskSnapshot] = []
        failed: List[TaskDraft] = []
        for draft in drafts:
            try:
                with self._unit_of_work():
                    task = self.tasks.create(draft)
                    self.members.update(
                        member.id,
                        MemberPatch(note=f'{SYSTEM_NOTE_PREFIX}Auto-created task: "{draft.description}"'),
                    )
            except PersistenceError:
                logger.exception(
                    "Automation task %r for member %s could not be saved", draft.description, member.id
                )
                failed.append(draft)
                continue

            created.append(task)
            self._queue(
                member,
                ProgressionEvent(
                    kind=EventKind.TASK_CREATED,
                    trigger=trigger,
                    member_id=member.id,
                    occurred_at=self.clock.now(),
                    to_stage_id=stage.id,
                    task_id=task.id,
                    reason=draft.description,
                ),
            )
        return created, failed

    def _transition(
        self,
        member: MemberSnapshot,
        target: StageSnapshot,
        *,
        reason: str,
        expected_stage_id: Any,
        trigger: Trigger,
        assignee_id: Optional[int],
    ) -> TransitionResult:
        expected = member.current_stage_id if expected_stage_id is None else expected_stage_id
        if not _same(member.current_stage_id, expected):
            return self._conflict(member, expected, target.id, trigger)

        if _same(target.id, member.current_stage_id):
            return TransitionResult(
                outcome=Outcome.NOOP,
                member=member,
                trigger=trigger,
                from_stage_id=member.current_stage_id,
                to_stage_id=target.id,
            )

        now = self.clock.now()
        with self._unit_of_work():
            updated = self.members.update(
                member.id,
                MemberPatch(
                    current_stage_id=target.id,
                    last_stage_change_date=now,
                    note=SYSTEM_NOTE_PREFIX + reason,
                ),
                expected_stage_id=expected,
            )
            if updated is None:
                current = self.members.get(member.id)
                return self._conflict(current, expected, target.id, trigger)

            if trigger != Trigger.MANUAL:
                self._queue(
                    updated,
                    ProgressionEvent(
                        kind=EventKind.STAGE_ADVANCED,
                        trigger=trigger,
                        member_id=member.id,
                        occurred_at=now,
                        from_stage_id=expected,
                        to_stage_id=target.id,
                        reason=reason,
                    ),
                )
            created, failed = self._create_automation_tasks(
                updated, target, assignee_id=assignee_id, trigger=trigger
            )

        logger.info(
            "Member %s moved from stage %s to %s (%s): %s", member.id, expected, target.id, trigger.value, reason
        )
        return TransitionResult(
            outcome=Outcome.ADVANCED,
            member=self.members.get(member.id) if created else updated,
            trigger=trigger,
            from_stage_id=expected,
            to_stage_id=target.id,
            reason=reason,
            created_tasks=created,
            failed_tasks=failed,
        )

    def _complete(
        self,
        member: MemberSnapshot,
        *,
        reason: str,
        expected_stage_id: Any,
        trigger: Trigger,
    ) -> TransitionResult:
        expected = member.current_stage_id if expected_stage_id is None else expected_stage_id
        if not _same(member.current_stage_id, expected):
            return self._conflict(member, expected, member.current_stage_id, trigger)

        if member.status == MemberStatus.INTEGRATED:
            return TransitionResult(outcome=Outcome.NOOP, member=member, trigger=trigger)

        with self._unit_of_work():
            updated = self.members.update(
                member.id,
                MemberPatch(status=MemberStatus.INTEGRATED, note=SYSTEM_NOTE_PREFIX + reason),
                expected_stage_id=expected,
                expected_status=member.status,
            )
            if updated is None:
                current = self.members.get(member.id)
                return self._conflict(current, expected, member.current_stage_id, trigger)

            if trigger != Trigger.MANUAL:
                self._queue(
                    updated,
                    ProgressionEvent(
                        kind=EventKind.PATHWAY_COMPLETED,
                        trigger=trigger,
                        member_id=member.id,
                        occurred_at=self.clock.now(),
                        from_stage_id=expected,
                        to_stage_id=expected,
                        reason=reason,
                    ),
                )

        logger.info("Member %s completed the %s pathway (%s)", member.id, member.pathway, trigger.value)
        return TransitionResult(
            outcome=Outcome.COMPLETED,
            member=updated,
            trigger=trigger,
            from_stage_id=expected,
            to_stage_id=expected,
            reason=reason,
        )

    def apply_decision(
        self,
        member: MemberSnapshot,
        decision: AdvanceDecision,
        *,
        assignee_id: Optional[int] = None,
    ) -> TransitionResult:
        if decision.completes_pathway:
            return self._complete(
                member,
                reason=decision.reason,
                expected_stage_id=decision.current_stage.id,
                trigger=decision.trigger,
            )
        return self._transition(
            member,
            decision.next_stage,
            reason=decision.reason,
            expected_stage_id=decision.current_stage.id,
            trigger=decision.trigger,
            assignee_id=assignee_id,
        )

    # -------------------------
    # Manual transitions
    # -------------------------
    def advance_member(
        self,
        member_id: Any,
        target_stage_id: Any,
        *,
        reason: str,
        expected_stage_id: Any = None,
        trigger: Trigger = Trigger.MANUAL,
        assignee_id: Optional[int] = None,
    ) -> TransitionResult:
        """
        Puts the member into `target_stage_id` (any stage of its pathway) and runs the
        automation rules of the new stage. Raises PathwayMismatch for a foreign stage.
        """
        member = self.members.get(member_id)
        stages = self.stages.stages_for(member.pathway)
        target = self._find_stage(stages, target_stage_id, member)
        return self._transition(
            member,
            target,
            reason=reason,
            expected_stage_id=expected_stage_id,
            trigger=trigger,
            assignee_id=assignee_id,
        )

    def move_member(
        self,
        member_id: Any,
        target_stage_id: Any,
        *,
        expected_stage_id: Any = None,
        assignee_id: Optional[int] = None,
    ) -> TransitionResult:
        member = self.members.get(member_id)
        stages = self.stages.stages_for(member.pathway)
        target = self._find_stage(stages, target_stage_id, member)
        source = next((s for s in stages if _same(s.id, member.current_stage_id)), None)
        source_name = source.name if source is not None else "an unknown stage"
        return self._transition(
            member,
            target,
            reason=f"Moved from {source_name} to {target.name}",
            expected_stage_id=expected_stage_id,
            trigger=Trigger.MANUAL,
            assignee_id=assignee_id,
        )

    def advance_to_next(
        self,
        member_id: Any,
        *,
        expected_stage_id: Any = None,
        assignee_id: Optional[int] = None,
    ) -> TransitionResult:
        """One slot forward; at the last stage this completes the pathway."""
        member = self.members.get(member_id)
        stages = self.stages.stages_for(member.pathway)
        index = locate_stage(member, stages)

        if index + 1 >= len(stages):
            return self._complete(
                member,
                reason=COMPLETION_NOTE,
                expected_stage_id=expected_stage_id,
                trigger=Trigger.MANUAL,
            )

        target = stages[index + 1]
        return self._transition(
            member,
            target,
            reason=f"Advanced to {target.name}",
            expected_stage_id=expected_stage_id,
            trigger=Trigger.MANUAL,
            assignee_id=assignee_id,
        )

    def complete_pathway(
        self,
        member_id: Any,
        *,
        reason: str = COMPLETION_NOTE,
        expected_stage_id: Any = None,
    ) -> TransitionResult:
        member = self.members.get(member_id)
        stages = self.stages.stages_for(member.pathway)
        index = locate_stage(member, stages)
        if index + 1 < len(stages):
            raise ProgressionError(
                "Only a member in the last stage can complete the pathway",
                {"member_id": str(member.id), "stage_id": str(member.current_stage_id)},
                code="not_last_stage",
            )
        return self._complete(
            member,
            reason=reason,
            expected_stage_id=expected_stage_id,
            trigger=Trigger.MANUAL,
        )

    # -------------------------
    # Task completion trigger
    # -------------------------
    def on_task_completed(self, task: TaskSnapshot, *, assignee_id: Optional[int] = None) -> Optional[TransitionResult]:
        """
        Runs once after `task` flipped to completed. Resolves the member fresh so the
        keyword is matched against the stage the member is in right now.
        """
        member = self.members.get(task.member_id)
        try:
            stages = self.stages.stages_for(member.pathway)
            decision = check_task_completion(member, stages, task)
        except ConfigurationError as exc:
            logger.warning("Skipping auto-advance for task %s of member %s: %s", task.id, member.id, exc)
            return None

        if decision is None:
            return None
        return self.apply_decision(member, decision, assignee_id=assignee_id)

    def complete_task(self, task_id: Any, *, assignee_id: Optional[int] = None) -> TaskCompletion:
        """
        Marks the task completed. Only the first false -> true flip in the task's
        lifetime evaluates the member's auto-advance rule: completing an already
        completed task changes nothing, and completing it again after a reopen only
        sets the flag.
        """
        task = self.tasks.get(task_id)
        if task.completed:
            return TaskCompletion(task=task)

        now = self.clock.now()
        with self._unit_of_work():
            updated = self.tasks.update(
                task.id,
                TaskPatch(completed=True, completed_at=now),
                expected_completed=False,
            )
            if updated is None:
                logger.info("Task %s was completed by another request (no-op)", task.id)
                return TaskCompletion(task=self.tasks.get(task.id))

            transition = None
            if self.tasks.claim_first_completion(task.id, now):
                transition = self.on_task_completed(updated, assignee_id=assignee_id)
            else:
                logger.info("Task %s completed again after a reopen; auto-advance not re-evaluated", task.id)
        return TaskCompletion(task=self.tasks.get(task.id), transition=transition, changed=True)

    def reopen_task(self, task_id: Any) -> TaskSnapshot:
        task = self.tasks.get(task_id)
        if not task.completed:
            return task
        with self._unit_of_work():
            reopened = self.tasks.update(
                task.id,
                TaskPatch(completed=False, completed_at=None),
                expected_completed=True,
            )
        return reopened if reopened is not None else self.tasks.get(task.id)

    # -------------------------
    # Time-in-stage sweep
    # -------------------------
    def _sweep_member(self, member: MemberSnapshot, stage_cache: Dict[str, List[StageSnapshot]]) -> Optional[TransitionResult]:
        stages = stage_cache.get(member.pathway)
        if stages is None:
            stages = stage_cache[member.pathway] = self.stages.stages_for(member.pathway)

        if check_time_in_stage(member, stages, self.clock.now()) is None:
            return None

        # the listing may be stale by now
        fresh = self.members.get(member.id)
        decision = check_time_in_stage(fresh, stages, self.clock.now())
        if decision is None:
            return None
        return self.apply_decision(fresh, decision)

    def sweep_time_in_stage(
        self,
        *,
        limit: Optional[int] = None,
        should_stop: Optional[Callable[[], bool]] = None,
        resume_after: Any = None,
    ) -> SweepReport:
        """
        One pass over the non-integrated members in id order. Each member is handled in
        its own unit of work; configuration and persistence errors skip that member only.
        `should_stop` is checked between members.

        `limit` caps the members examined per pass. A capped or interrupted pass sets
        `report.resume_after`; handing it back as `resume_after` continues with the
        next member, and the pass after the last member starts over from the first.
        """
        report = SweepReport()
        stage_cache: Dict[str, List[StageSnapshot]] = {}

        def _page(after_id: Any) -> List[MemberSnapshot]:
            return list(
                self.members.list(
                    MemberFilter(exclude_statuses=(MemberStatus.INTEGRATED,), limit=limit, after_id=after_id)
                )
            )

        batch = _page(resume_after)
        if not batch and resume_after is not None:
            batch = _page(None)

        last_id = None
        for member in batch:
            if should_stop is not None and should_stop():
                report.interrupted = True
                logger.info("Time-in-stage sweep interrupted after %s members", report.examined)
                break

            report.examined += 1
            last_id = member.id
            try:
                result = self._sweep_member(member, stage_cache)
            except (ConfigurationError, MemberNotFound) as exc:
                report.skipped += 1
                logger.warning("Skipping member %s in time-in-stage sweep: %s", member.id, exc)
                continue
            except PersistenceError:
                report.errors += 1
                report.failed_member_ids.append(member.id)
                logger.exception("Time-in-stage sweep failed for member %s", member.id)
                continue

            if result is not None:
                report.record(result)

        if report.interrupted:
            report.resume_after = last_id if last_id is not None else resume_after
        elif limit is not None and len(batch) >= limit:
            report.resume_after = last_id

        logger.info(
            "Time-in-stage sweep: examined=%s advanced=%s completed=%s conflicts=%s skipped=%s errors=%s",
            report.examined,
            report.advanced,
            report.completed,
            report.conflicts,
            report.skipped,
            report.errors,
        )
        return report
