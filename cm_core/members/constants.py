# cm_core/members/constants.py
from django.db import models


class MemberStatus(models.TextChoices):
    ACTIVE = "ACTIVE", "Active"
    INTEGRATED = "INTEGRATED", "Integrated"
    INACTIVE = "INACTIVE", "Inactive"
