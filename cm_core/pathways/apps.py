# cm_core/pathways/apps.py
from django.apps import AppConfig


class PathwaysConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "cm_core.pathways"
