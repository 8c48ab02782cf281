# cm_core/pathways/management/commands/seed_pathways.py
from __future__ import annotations

from uuid import UUID

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from cm_core.automation.models import AutomationRule
from cm_core.automation.services import AutomationRuleService
from cm_core.pathways.defaults import DEFAULT_AUTOMATION_RULES, DEFAULT_STAGES
from cm_core.pathways.models import Stage
from cm_core.pathways.services import StageService


class Command(BaseCommand):
    help = "Create the default Newcomer / New Believer stages and automation rules for a tenant. Safe to re-run."

    def add_arguments(self, parser):
        parser.add_argument("--tenant-id", type=str, required=True, help="Tenant UUID.")

    @transaction.atomic
    def handle(self, *args, **opts):
        try:
            tenant_id = UUID(opts["tenant_id"])
        except ValueError:
            raise CommandError(f"--tenant-id is not a valid UUID: {opts['tenant_id']!r}")

        stages_created = 0
        rules_created = 0

        for pathway, stages in DEFAULT_STAGES.items():
            # never touch a pathway someone already configured
            if Stage.objects.for_tenant(tenant_id).filter(pathway=pathway).exists():
                self.stdout.write(f"{pathway}: already configured, skipped")
                continue
            for stage_fields in stages:
                StageService.create_stage(tenant_id=tenant_id, pathway=pathway, **stage_fields)
                stages_created += 1

        for rule in DEFAULT_AUTOMATION_RULES:
            stage = Stage.objects.for_tenant(tenant_id).filter(pathway=rule["pathway"], name=rule["stage"]).first()
            if stage is None:
                continue
            exists = AutomationRule.objects.filter(
                tenant_id=tenant_id,
                stage=stage,
                task_description=rule["task_description"],
            ).exists()
            if exists:
                continue
            AutomationRuleService.create_rule(
                tenant_id=tenant_id,
                stage_id=stage.id,
                name=rule["name"],
                task_description=rule["task_description"],
                days_due=rule["days_due"],
                priority=rule["priority"],
            )
            rules_created += 1

        self.stdout.write(f"Stages created: {stages_created}")
        self.stdout.write(f"Automation rules created: {rules_created}")
