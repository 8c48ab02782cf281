# cm_core/progression/services.py
from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional
from uuid import UUID

from django.conf import settings
from django.db import transaction

from cm_core.common.clock import SystemClock
from cm_core.members.models import Member
from cm_core.progression.domain import SweepReport, TaskCompletion, TaskSnapshot, TransitionResult
from cm_core.progression.engine import ProgressionEngine
from cm_core.progression.interfaces import Clock, NotificationSink
from cm_core.progression.models import SweepCursor
from cm_core.progression.notifications import EventBusNotifier
from cm_core.progression.repositories import (
    DjangoAutomationRuleSet,
    DjangoMemberRepository,
    DjangoStageCatalog,
    DjangoTaskRepository,
)

logger = logging.getLogger(__name__)

_DEFAULT = object()


class ProgressionService:
    """
    Tenant-scoped entry points into the progression engine backed by the Django ORM.

    Notes:
    - Each call builds its own engine; engines are not shared between threads.
    - The unit of work is `transaction.atomic`; automation task writes run in savepoints.
    - Automatic transitions are published on the event bus (`progression.*`) and audited
      by `cm_core.audit.subscribers`.
    """

    @staticmethod
    def engine_for(
        *,
        tenant_id: UUID,
        clock: Optional[Clock] = None,
        notifier=_DEFAULT,
    ) -> ProgressionEngine:
        return ProgressionEngine(
            members=DjangoMemberRepository(tenant_id),
            tasks=DjangoTaskRepository(tenant_id),
            stages=DjangoStageCatalog(tenant_id),
            rules=DjangoAutomationRuleSet(tenant_id),
            clock=clock or SystemClock(),
            notifier=EventBusNotifier(tenant_id) if notifier is _DEFAULT else notifier,
            atomic=transaction.atomic,
        )

    # -------------------------
    # Member transitions
    # -------------------------
    @staticmethod
    def move_member(
        *,
        tenant_id: UUID,
        member_id: UUID,
        stage_id: UUID,
        expected_stage_id: Optional[UUID] = None,
        assignee_id: Optional[int] = None,
        clock: Optional[Clock] = None,
    ) -> TransitionResult:
        engine = ProgressionService.engine_for(tenant_id=tenant_id, clock=clock)
        return engine.move_member(
            member_id,
            stage_id,
            expected_stage_id=expected_stage_id,
            assignee_id=assignee_id,
        )

    @staticmethod
    def advance_member(
        *,
        tenant_id: UUID,
        member_id: UUID,
        expected_stage_id: Optional[UUID] = None,
        assignee_id: Optional[int] = None,
        clock: Optional[Clock] = None,
    ) -> TransitionResult:
        engine = ProgressionService.engine_for(tenant_id=tenant_id, clock=clock)
        return engine.advance_to_next(
            member_id,
            expected_stage_id=expected_stage_id,
            assignee_id=assignee_id,
        )

    # -------------------------
    # Task completion trigger
    # -------------------------
    @staticmethod
    def complete_task(
        *,
        tenant_id: UUID,
        task_id: UUID,
        assignee_id: Optional[int] = None,
        clock: Optional[Clock] = None,
    ) -> TaskCompletion:
        engine = ProgressionService.engine_for(tenant_id=tenant_id, clock=clock)
        return engine.complete_task(task_id, assignee_id=assignee_id)

    @staticmethod
    def reopen_task(*, tenant_id: UUID, task_id: UUID, clock: Optional[Clock] = None) -> TaskSnapshot:
        engine = ProgressionService.engine_for(tenant_id=tenant_id, clock=clock)
        return engine.reopen_task(task_id)

    # -------------------------
    # Time-in-stage sweep
    # -------------------------
    @staticmethod
    def _save_cursor(tenant_id: UUID, cursor: Optional[SweepCursor], resume_after: Optional[UUID]) -> None:
        if cursor is None:
            if resume_after is not None:
                SweepCursor.objects.create(tenant_id=tenant_id, resume_after=resume_after)
            return
        if cursor.resume_after != resume_after:
            cursor.resume_after = resume_after
            cursor.save(update_fields=["resume_after", "updated_at"])

    @staticmethod
    def tenant_ids() -> Iterable[UUID]:
        return Member.objects.order_by().values_list("tenant_id", flat=True).distinct()

    @staticmethod
    def sweep(
        *,
        tenant_id: Optional[UUID] = None,
        limit: Optional[int] = None,
        should_stop: Optional[Callable[[], bool]] = None,
        clock: Optional[Clock] = None,
        notifier: Optional[NotificationSink] = _DEFAULT,
    ) -> SweepReport:
        """
        One time-in-stage pass. Without `tenant_id` every tenant that has members is swept.
        `limit` bounds the members examined per tenant (defaults to PROGRESSION_SWEEP_BATCH_LIMIT);
        a capped pass resumes where the previous one stopped, so every member is reached.
        """
        if limit is None:
            limit = getattr(settings, "PROGRESSION_SWEEP_BATCH_LIMIT", None)

        tenants = [tenant_id] if tenant_id is not None else list(ProgressionService.tenant_ids())
        report = SweepReport()
        for tid in tenants:
            if should_stop is not None and should_stop():
                report.interrupted = True
                break
            cursor = SweepCursor.objects.for_tenant(tid).first()
            engine = ProgressionService.engine_for(tenant_id=tid, clock=clock, notifier=notifier)
            tenant_report = engine.sweep_time_in_stage(
                limit=limit,
                should_stop=should_stop,
                resume_after=cursor.resume_after if cursor is not None else None,
            )
            ProgressionService._save_cursor(tid, cursor, tenant_report.resume_after)
            report.merge(tenant_report)
            if report.interrupted:
                break

        logger.info("Time-in-stage sweep finished for %s tenant(s)", len(tenants))
        return report
