# models.py (Django 5.x) - absence requests

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from apps.scheduling.models import Employee


class AbsenceRequest(models.Model):
    """An employee's request to be away for a day or a period."""
    class Status(models.TextChoices):
        PENDING = "pending", "Odottaa"
        APPROVED = "approved", "Hyväksytty"
        DECLINED = "declined", "Hylätty"

    employee = models.ForeignKey(Employee, on_delete=models.CASCADE, related_name="absence_requests")
    start_date = models.DateField()
    end_date = models.DateField()
    reason = models.TextField(blank=True, default="")
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.PENDING)

    admin_message = models.TextField(blank=True, default="")
    submitted_at = models.DateTimeField(default=timezone.now)
    decided_at = models.DateTimeField(null=True, blank=True)
    decided_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="absence_decisions",
    )

    class Meta:
        ordering = ["-submitted_at"]

    def __str__(self) -> str:
        return f"{self.employee.name}: {self.period} ({self.get_status_display()})"

    @property
    def period(self) -> str:
        start = self.start_date.isoformat()
        end = self.end_date.isoformat()
        return start if start == end else f"{start}–{end}"

    @property
    def is_pending(self) -> bool:
        return self.status == self.Status.PENDING
