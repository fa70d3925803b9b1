"""Django app configuration for notifications app."""

from django.apps import AppConfig


class NotificationsConfig(AppConfig):
    """Configuration for notifications and the mail queue."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.notifications"
    verbose_name = "Ilmoitukset"  # Finnish: Notifications
