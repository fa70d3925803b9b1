# models.py (Django 5.x) - notification settings, the outgoing mail queue and push endpoints

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone


class AppSettings(models.Model):
    """Single row (pk=1) of notification settings."""
    email_notifications = models.BooleanField(default=True)
    absence_requests = models.BooleanField(default=True)
    schedule_changes = models.BooleanField(default=True)
    admin_notification_emails = models.JSONField(default=list, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "app settings"
        verbose_name_plural = "app settings"

    def __str__(self) -> str:
        return "Ilmoitusasetukset"

    @classmethod
    def load(cls) -> "AppSettings":
        """Stored settings, or unsaved defaults when the row does not exist yet."""
        return cls.objects.filter(pk=1).first() or cls(pk=1)

    def save(self, *args, **kwargs):
        self.pk = 1
        super().save(*args, **kwargs)

    @property
    def recipients(self) -> list[str]:
        emails = self.admin_notification_emails or []
        if not isinstance(emails, list):
            return []
        return [e.strip() for e in emails if isinstance(e, str) and e.strip()]


class MailJob(models.Model):
    """A queued email, drained by the process_mail_jobs command."""
    class Type(models.TextChoices):
        ADMIN_NEW_ABSENCE = "admin_new_absence", "Uusi poissaolopyyntö"
        EMPLOYEE_NEW_SHIFT = "employee_new_shift", "Uusi työvuoro"
        EMPLOYEE_SHIFT_CHANGED = "employee_shift_changed", "Työvuoro muuttunut"
        EMPLOYEE_SHIFT_DELETED = "employee_shift_deleted", "Työvuoro poistettu"

    class Status(models.TextChoices):
        QUEUED = "queued", "Jonossa"
        SENT = "sent", "Lähetetty"
        FAILED = "failed", "Epäonnistui"

    # Not restricted to Type: unknown job types are skipped by the dispatcher.
    type = models.CharField(max_length=40)
    payload = models.JSONField(default=dict, blank=True)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.QUEUED)
    attempt_count = models.PositiveIntegerField(default=0)
    last_error = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    processed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["status", "created_at"], name="mailjob_status_created"),
        ]

    def __str__(self) -> str:
        return f"#{self.pk} {self.type} ({self.status})"


class Notification(models.Model):
    """In-app log of notable events."""
    type = models.CharField(max_length=40)
    title = models.CharField(max_length=200)
    message = models.TextField(blank=True, default="")
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return self.title


class PushSubscription(models.Model):
    """Browser push endpoint registered by a signed-in user."""
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="push_subscriptions",
    )
    endpoint = models.URLField(max_length=500, unique=True)
    p256dh = models.CharField(max_length=200)
    auth = models.CharField(max_length=100)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(default=timezone.now)
    last_error = models.TextField(null=True, blank=True)

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self) -> str:
        return self.endpoint

    def as_subscription_info(self) -> dict:
        return {"endpoint": self.endpoint, "keys": {"p256dh": self.p256dh, "auth": self.auth}}
