# cm_core/automation/apps.py
from django.apps import AppConfig


class AutomationConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "cm_core.automation"
