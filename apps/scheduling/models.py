# models.py (Django 5.x) - Vuorolista shift grid
#
# Employees are the rows of the grid, dates the columns.
# One Shift per (employee, work_date): hours or an absence marker.

from __future__ import annotations

import hashlib
import secrets
import uuid
from datetime import timedelta

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from .editor import ShiftEntry, ShiftKind


class Employee(models.Model):
    """A row in the shift grid."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=120)
    email = models.EmailField(unique=True)
    department = models.CharField(max_length=80, blank=True, default="")
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name", "email"]

    def __str__(self) -> str:
        return self.name


class Shift(models.Model):
    """Persisted cell of the grid."""
    class Kind(models.TextChoices):
        NORMAL = ShiftKind.NORMAL.value, "Normaali"
        LOCKED = ShiftKind.LOCKED.value, "Lukittu"
        ABSENT = ShiftKind.ABSENT.value, "Poissa"
        HOLIDAY = ShiftKind.HOLIDAY.value, "Loma"

    employee = models.ForeignKey(Employee, on_delete=models.CASCADE, related_name="shifts")
    work_date = models.DateField()
    kind = models.CharField(max_length=10, choices=Kind.choices, default=Kind.NORMAL)
    hours = models.FloatField(null=True, blank=True, validators=[MinValueValidator(0)])

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["work_date", "employee__name"]
        constraints = [
            models.UniqueConstraint(fields=["employee", "work_date"], name="unique_shift_per_day"),
        ]

    def __str__(self) -> str:
        label = f"{self.hours:g} h" if self.hours is not None else self.get_kind_display()
        return f"{self.employee.name} {self.work_date.isoformat()}: {label}"

    def to_entry(self) -> ShiftEntry:
        kind = ShiftKind(self.kind)
        return ShiftEntry(
            employee_id=str(self.employee_id),
            work_date=self.work_date,
            kind=kind,
            hours=self.hours if kind.carries_hours else None,
        )


class PersonalAccessToken(models.Model):
    """Token auth for the REST API."""
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="api_tokens")
    label = models.CharField(max_length=80)
    token_hash = models.CharField(max_length=64, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)
    expires_at = models.DateTimeField(null=True, blank=True)
    revoked_at = models.DateTimeField(null=True, blank=True)
    last_used_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.user} - {self.label}"

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    @property
    def is_expired(self) -> bool:
        return self.expires_at is not None and timezone.now() >= self.expires_at

    def is_active(self) -> bool:
        return not self.is_revoked and not self.is_expired

    def revoke(self) -> None:
        if self.revoked_at is None:
            self.revoked_at = timezone.now()
            self.save(update_fields=["revoked_at"])

    @staticmethod
    def _hash(raw_token: str) -> str:
        return hashlib.sha256(raw_token.encode()).hexdigest()

    @classmethod
    def issue(cls, *, user, label: str, ttl_hours: int | None = None) -> tuple["PersonalAccessToken", str]:
        raw = secrets.token_urlsafe(32)
        expires_at = timezone.now() + timedelta(hours=ttl_hours) if ttl_hours else None
        obj = cls.objects.create(user=user, label=label, token_hash=cls._hash(raw), expires_at=expires_at)
        return obj, raw

    @classmethod
    def authenticate_raw_token(cls, raw_token: str) -> "PersonalAccessToken | None":
        tok = cls.objects.filter(token_hash=cls._hash(raw_token)).select_related("user").first()
        if not tok or not tok.is_active():
            return None
        tok.last_used_at = timezone.now()
        tok.save(update_fields=["last_used_at"])
        return tok
