"""
Producers for the notification queue.

Nothing in this module raises into the caller: the action that triggered a
notification (an absence request, a schedule save) has already happened and
must not be undone because an email could not be queued or sent. Each
function reports what happened as a NotifyOutcome instead.
"""

from __future__ import annotations

import logging
from enum import Enum

from django.db import DatabaseError, transaction
from django.utils import timezone

from .mailer import SIGNATURE, format_period, send_email
from .models import AppSettings, MailJob, Notification
from .push import push_enabled

logger = logging.getLogger(__name__)


class NotifyOutcome(str, Enum):
    QUEUED = "queued"
    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"


def enqueue_job(job_type: str, payload: dict) -> NotifyOutcome:
    """Insert one queued MailJob."""
    try:
        with transaction.atomic():
            MailJob.objects.create(type=job_type, payload=payload, status=MailJob.Status.QUEUED)
    except DatabaseError:
        logger.exception("Could not enqueue %s mail job", job_type)
        return NotifyOutcome.FAILED
    return NotifyOutcome.QUEUED


def enqueue_admin_new_absence(
    *,
    employee_id: str,
    start_date: str,
    end_date: str | None = None,
    reason: str | None = None,
) -> NotifyOutcome:
    """Queue the admin email and push about a newly submitted absence request."""
    settings = AppSettings.load()
    if not settings.absence_requests:
        return NotifyOutcome.SKIPPED
    email_ready = settings.email_notifications and settings.recipients
    if not email_ready and not push_enabled():
        return NotifyOutcome.SKIPPED

    return enqueue_job(
        MailJob.Type.ADMIN_NEW_ABSENCE,
        {
            "employee_id": str(employee_id),
            "start_date": start_date,
            "end_date": end_date,
            "reason": reason,
        },
    )


_CHANGE_JOB_TYPES = {
    "new": MailJob.Type.EMPLOYEE_NEW_SHIFT,
    "changed": MailJob.Type.EMPLOYEE_SHIFT_CHANGED,
    "deleted": MailJob.Type.EMPLOYEE_SHIFT_DELETED,
}


def enqueue_shift_changes(changes) -> NotifyOutcome:
    """Queue one employee email per saved ShiftChange."""
    if not changes:
        return NotifyOutcome.SKIPPED
    settings = AppSettings.load()
    if not settings.email_notifications or not settings.schedule_changes:
        return NotifyOutcome.SKIPPED

    jobs = []
    for change in changes:
        before, after = change.before, change.after
        jobs.append(MailJob(
            type=_CHANGE_JOB_TYPES[change.kind],
            payload={
                "employee_id": change.employee_id,
                "work_date": change.work_date.isoformat(),
                "old_kind": before.kind.value if before else None,
                "old_hours": before.hours if before else None,
                "new_kind": after.kind.value if after else None,
                "new_hours": after.hours if after else None,
            },
        ))
    try:
        with transaction.atomic():
            MailJob.objects.bulk_create(jobs)
    except DatabaseError:
        logger.exception("Could not enqueue %d shift change mail jobs", len(jobs))
        return NotifyOutcome.FAILED
    logger.info("Queued %d shift change mail jobs", len(jobs))
    return NotifyOutcome.QUEUED


def notify_absence_decision(
    *,
    employee,
    status: str,
    start_date: str,
    end_date: str | None = None,
    admin_message: str = "",
) -> NotifyOutcome:
    """Email the employee about an approved or declined absence request."""
    settings = AppSettings.load()
    if not settings.email_notifications:
        return NotifyOutcome.SKIPPED
    if not employee.email:
        logger.warning("Employee %s has no email, absence decision not sent", employee.pk)
        return NotifyOutcome.SKIPPED

    approved = status == "approved"
    period = format_period(start_date, end_date)
    if approved:
        subject = f"Poissaolopyyntösi on hyväksytty ({period})"
    else:
        subject = f"Poissaolopyyntösi on hylätty ({period})"

    parts = []
    message = (admin_message or "").strip()
    if message:
        heading = "Viestisi vastaus" if approved else "Perustelu"
        parts.append(f"{heading}:\n\n{message}\n\n")
    parts.append(
        f"Hei {employee.name},\n\n"
        f"Poissaolopyyntösi on {'hyväksytty' if approved else 'hylätty'}.\n"
        f"Jakso: {period}\n"
    )
    if not approved:
        parts.append("\nJos tämä on virhe, ole yhteydessä esihenkilöön.\n")
    parts.append(f"\n{SIGNATURE}")

    outcome = NotifyOutcome.SENT
    try:
        send_email(employee.email, subject, "".join(parts))
    except Exception:
        logger.exception("Absence decision email to %s failed", employee.email)
        outcome = NotifyOutcome.FAILED

    try:
        with transaction.atomic():
            Notification.objects.create(
                type="absence_approved" if approved else "absence_declined",
                title="Poissaolo hyväksytty" if approved else "Poissaolo hylätty",
                message=f"{employee.name} • {period}",
                created_at=timezone.now(),
            )
    except DatabaseError:
        logger.warning("Could not log absence decision notification", exc_info=True)

    return outcome
