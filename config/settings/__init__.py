# config/settings/__init__.py
# DJANGO_ENV selects the settings module: "prod" for production, anything else is local (sqlite).
import os

if os.getenv("DJANGO_ENV", "local").strip().lower() == "prod":
    from .prod import *  # noqa
else:
    from .local import *  # noqa
