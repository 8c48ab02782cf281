# cm_core/progression/management/commands/sweep_time_in_stage.py
from __future__ import annotations

import signal
import threading
from uuid import UUID

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from cm_core.progression.services import ProgressionService


class Command(BaseCommand):
    help = "Advance members who have spent their stage's TIME_IN_STAGE threshold in it. One pass unless --loop."

    def add_arguments(self, parser):
        parser.add_argument("--tenant-id", type=str, default=None, help="Optional tenant UUID filter.")
        parser.add_argument("--limit", type=int, default=None, help="Optional limit of members examined per tenant.")
        parser.add_argument("--loop", action="store_true", help="Keep sweeping until interrupted.")
        parser.add_argument(
            "--interval",
            type=int,
            default=None,
            help="Seconds between passes with --loop (default PROGRESSION_SWEEP_INTERVAL_SECONDS).",
        )

    def _install_stop_handlers(self, stop: threading.Event) -> dict:
        previous = {}
        if threading.current_thread() is not threading.main_thread():
            return previous

        def _request_stop(signum, frame):
            stop.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            previous[sig] = signal.signal(sig, _request_stop)
        return previous

    def handle(self, *args, **opts):
        tenant_id = None
        if opts["tenant_id"]:
            try:
                tenant_id = UUID(opts["tenant_id"])
            except ValueError:
                raise CommandError(f"--tenant-id is not a valid UUID: {opts['tenant_id']!r}")

        limit = opts["limit"]
        if limit is not None and limit <= 0:
            raise CommandError("--limit must be a positive integer.")

        interval = opts["interval"]
        if interval is None:
            interval = getattr(settings, "PROGRESSION_SWEEP_INTERVAL_SECONDS", 60)

        # signals only stop the loop between members, never mid-transaction
        stop = threading.Event()
        previous = self._install_stop_handlers(stop)
        passes = 0
        try:
            while True:
                report = ProgressionService.sweep(tenant_id=tenant_id, limit=limit, should_stop=stop.is_set)
                passes += 1

                self.stdout.write(f"Members examined: {report.examined}")
                self.stdout.write(f"Advanced: {report.advanced}")
                self.stdout.write(f"Pathways completed: {report.completed}")
                self.stdout.write(f"Conflicts: {report.conflicts}")
                self.stdout.write(f"Skipped (configuration): {report.skipped}")
                self.stdout.write(f"Errors: {report.errors}")
                if report.failed_tasks:
                    self.stdout.write(f"Automation tasks not created: {report.failed_tasks}")

                if not opts["loop"] or stop.is_set() or report.interrupted:
                    break
                if stop.wait(interval):
                    break
        finally:
            for sig, handler in previous.items():
                signal.signal(sig, handler)

        if stop.is_set():
            self.stdout.write(self.style.WARNING(f"Sweep stopped after {passes} pass(es)."))
