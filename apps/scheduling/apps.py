"""Django app configuration for scheduling app."""

from django.apps import AppConfig


class SchedulingConfig(AppConfig):
    """Configuration for the shift grid application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.scheduling"
    verbose_name = "Vuorolista"  # Finnish: Shift roster
