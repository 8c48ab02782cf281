# cm_core/pathways/constants.py
from django.db import models


class Pathway(models.TextChoices):
    NEWCOMER = "NEWCOMER", "Newcomer"
    NEW_BELIEVER = "NEW_BELIEVER", "New Believer"


class AutoAdvanceType(models.TextChoices):
    TASK_COMPLETED = "TASK_COMPLETED", "Task completed"
    TIME_IN_STAGE = "TIME_IN_STAGE", "Time in stage"
