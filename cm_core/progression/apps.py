# cm_core/progression/apps.py
from django.apps import AppConfig


class ProgressionConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "cm_core.progression"
