# config/settings/prod.py
from .base import *  # noqa

DEBUG = False
ALLOWED_HOSTS = [h.strip() for h in os.getenv("DJANGO_ALLOWED_HOSTS", "").split(",") if h.strip()]  # noqa: F405

SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True

PROGRESSION_SWEEP_BATCH_LIMIT = int(os.getenv("PROGRESSION_SWEEP_BATCH_LIMIT", "5000"))  # noqa: F405
