# config/settings/local.py
from .base import *  # noqa

DEBUG = True

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.getenv("DB_NAME", str(BASE_DIR / "db.sqlite3")),  # noqa: F405
    }
}

# sqlite cannot defer unique constraints; stage order uniqueness is then kept by StageService alone
SILENCED_SYSTEM_CHECKS = ["models.W038"]
