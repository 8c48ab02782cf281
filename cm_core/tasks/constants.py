# cm_core/tasks/constants.py
from django.db import models


class TaskPriority(models.TextChoices):
    LOW = "LOW", "Low"
    MEDIUM = "MEDIUM", "Medium"
    HIGH = "HIGH", "High"


class TaskSource(models.TextChoices):
    MANUAL = "MANUAL", "Manual"
    AUTOMATION = "AUTOMATION", "Automation rule"
