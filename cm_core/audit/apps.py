# cm_core/audit/apps.py
from django.apps import AppConfig


class AuditConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "cm_core.audit"

    def ready(self):
        # Registers progression event handlers on the in-process bus
        from cm_core.audit import subscribers  # noqa: F401
