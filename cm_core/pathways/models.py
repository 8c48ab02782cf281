# cm_core/pathways/models.py
from django.db import models

from cm_core.common.models import ScopedModel
from cm_core.pathways.constants import AutoAdvanceType, Pathway
from cm_core.pathways.rules import parse_auto_advance_rule


class Stage(ScopedModel):
    """
    One ordered step of a pathway.
    `order` is 1-based and contiguous per (tenant, pathway); StageService keeps it normalized.
    """
    pathway = models.CharField(max_length=32, choices=Pathway.choices, db_index=True)
    name = models.CharField(max_length=128)
    order = models.PositiveIntegerField()
    description = models.TextField(blank=True)

    # Optional auto-advance rule, stored as a (type, value) pair
    auto_advance_type = models.CharField(
        max_length=32,
        choices=AutoAdvanceType.choices,
        blank=True,
        default="",
    )
    auto_advance_value = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        db_table = "pathways_stage"
        ordering = ["pathway", "order"]
        constraints = [
            models.UniqueConstraint(
                fields=["tenant_id", "pathway", "name"],
                name="uq_stage_name_per_pathway",
            ),
            # deferred: StageService renumbers a pathway inside one transaction
            models.UniqueConstraint(
                fields=["tenant_id", "pathway", "order"],
                name="uq_stage_order_per_pathway",
                deferrable=models.Deferrable.DEFERRED,
            ),
        ]
        indexes = [
            models.Index(fields=["tenant_id", "pathway", "order"]),
        ]

    @property
    def auto_advance_rule(self):
        return parse_auto_advance_rule(self.auto_advance_type, self.auto_advance_value)

    def __str__(self) -> str:
        return f"{self.get_pathway_display()} #{self.order}: {self.name}"
