"""Absence request workflow: submit, then approve or decline."""

from __future__ import annotations

import logging
from datetime import date
from functools import partial

from django.db import transaction
from django.utils import timezone

from apps.notifications.services import enqueue_admin_new_absence, notify_absence_decision

from .models import AbsenceRequest

logger = logging.getLogger(__name__)


def submit_absence_request(
    *,
    employee,
    start_date: date,
    end_date: date | None = None,
    reason: str = "",
) -> AbsenceRequest:
    """
    Create a pending request and notify the admins once it is committed.

    The notification is queued after the transaction commits and its outcome
    never affects the request itself.
    """
    if employee is None:
        raise ValueError("Työntekijä on pakollinen")
    if start_date is None:
        raise ValueError("Alkupäivä on pakollinen")
    end_date = end_date or start_date
    if end_date < start_date:
        raise ValueError("Loppupäivä ei voi olla ennen alkupäivää")

    with transaction.atomic():
        absence = AbsenceRequest.objects.create(
            employee=employee,
            start_date=start_date,
            end_date=end_date,
            reason=(reason or "").strip(),
        )
        transaction.on_commit(partial(
            _notify_admins,
            employee_id=str(employee.pk),
            start_date=start_date.isoformat(),
            end_date=end_date.isoformat(),
            reason=absence.reason or None,
        ), robust=True)

    logger.info("Absence request %s submitted for %s", absence.pk, employee.pk)
    return absence


def _notify_admins(**payload) -> None:
    outcome = enqueue_admin_new_absence(**payload)
    logger.debug("Admin notification for new absence: %s", outcome.value)


def decide_absence_request(
    absence: AbsenceRequest,
    *,
    status: str,
    by_user=None,
    admin_message: str = "",
) -> AbsenceRequest:
    """Approve or decline a pending request and email the employee."""
    if status not in (AbsenceRequest.Status.APPROVED, AbsenceRequest.Status.DECLINED):
        raise ValueError(f"Invalid decision: {status!r}")
    if not absence.is_pending:
        raise ValueError("Pyyntö on jo käsitelty")

    absence.status = status
    absence.admin_message = (admin_message or "").strip()
    absence.decided_at = timezone.now()
    absence.decided_by = by_user
    absence.save(update_fields=["status", "admin_message", "decided_at", "decided_by"])

    outcome = notify_absence_decision(
        employee=absence.employee,
        status=status,
        start_date=absence.start_date.isoformat(),
        end_date=absence.end_date.isoformat(),
        admin_message=absence.admin_message,
    )
    logger.info("Absence request %s %s, employee notification: %s", absence.pk, status, outcome.value)
    return absence
