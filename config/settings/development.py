"""
Django development settings for Vuorolista project.

Extends base.py for local work: DEBUG on, mail printed to the console and
verbose logging for the editor and the mail queue.

Usage:
    export DJANGO_SETTINGS_MODULE=config.settings.development
    python manage.py runserver
"""

from decouple import config

from .base import *  # noqa: F401, F403

# =============================================================================
# DEBUG CONFIGURATION
# =============================================================================

DEBUG = True

ALLOWED_HOSTS = ["localhost", "127.0.0.1", "[::1]"]


# =============================================================================
# EMAIL
# =============================================================================

# Queued mail jobs are printed instead of sent
EMAIL_BACKEND = "django.core.mail.backends.console.EmailBackend"

DASHBOARD_URL = config("DASHBOARD_URL", default="http://localhost:8000/absences/")


# =============================================================================
# STATIC FILES (no compression)
# =============================================================================

STORAGES = {  # noqa: F405
    "default": {
        "BACKEND": "django.core.files.storage.FileSystemStorage",
    },
    "staticfiles": {
        "BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage",
    },
}


# =============================================================================
# REST FRAMEWORK
# =============================================================================

REST_FRAMEWORK["DEFAULT_RENDERER_CLASSES"] = [  # noqa: F405
    "rest_framework.renderers.JSONRenderer",
    "rest_framework.renderers.BrowsableAPIRenderer",
]


# =============================================================================
# LOGGING
# =============================================================================

LOGGING["loggers"]["django"]["level"] = "DEBUG"  # noqa: F405
LOGGING["loggers"]["apps"]["level"] = "DEBUG"  # noqa: F405
