"""Django app configuration for absences app."""

from django.apps import AppConfig


class AbsencesConfig(AppConfig):
    """Configuration for the absence request application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.absences"
    verbose_name = "Poissaolot"  # Finnish: Absences
