"""
Mail queue consumer.

Drains queued MailJob rows oldest first and turns each into an email
(new absence requests are also pushed to registered browsers). A
handler returns ``"sent"`` or ``"skipped: <reason>"``; anything it raises
marks the job failed. Skipped jobs are closed as sent with the reason kept in
``last_error`` so they are not picked up again.
"""

from __future__ import annotations

import logging

from django.conf import settings as django_settings
from django.utils import timezone

from apps.scheduling.models import Employee, Shift

from .mailer import SIGNATURE, format_period, send_email
from .models import AppSettings, MailJob
from .push import send_push

logger = logging.getLogger(__name__)

SENT = "sent"
MAX_ERROR_LENGTH = 500


def _employee(employee_id) -> Employee | None:
    if not employee_id:
        return None
    return Employee.objects.filter(pk=employee_id).first()


def _describe(kind: str | None, hours) -> str:
    if kind in ("absent", "holiday"):
        return Shift.Kind(kind).label
    if hours is None:
        return ""
    return f"{hours:g} h"


def _greeting(employee: Employee) -> str:
    return f"Hei {employee.name}," if employee.name else "Hei,"


def process_admin_new_absence(job: MailJob, settings: AppSettings) -> str:
    if not settings.absence_requests:
        return "skipped: absence_requests=false"

    payload = job.payload
    employee = _employee(payload.get("employee_id"))
    employee_name = employee.name if employee else "Tuntematon"
    period = format_period(str(payload.get("start_date")), payload.get("end_date"))

    # Push goes out even when email is off.
    send_push("Uusi poissaolopyyntö", f"{employee_name} • {period}", url=django_settings.DASHBOARD_URL or "/")

    if not settings.email_notifications:
        return "skipped: email_notifications=false"
    recipients = settings.recipients
    if not recipients:
        return "skipped: no recipients"

    lines = [
        f"Työntekijä: {employee_name}",
        f"Ajankohta: {period.replace('–', ' – ')}",
    ]
    if payload.get("reason"):
        lines.append(f"Syy: {payload['reason']}")
    if django_settings.DASHBOARD_URL:
        lines.append(f"Avaa hallinta: {django_settings.DASHBOARD_URL}")

    send_email(recipients, f"Uusi poissaolopyyntö: {employee_name} ({period})", "\n".join(lines))
    return SENT


def _process_employee_shift(job: MailJob, settings: AppSettings, subject: str, body: list[str]) -> str:
    if not settings.email_notifications:
        return "skipped: email_notifications=false"
    if not settings.schedule_changes:
        return "skipped: schedule_changes=false"

    employee_id = job.payload.get("employee_id")
    if not employee_id:
        return "skipped: no employee_id"
    employee = _employee(employee_id)
    if employee is None or not employee.email:
        return "skipped: employee has no email"

    lines = [_greeting(employee), "", *body, "", SIGNATURE]
    send_email([employee.email], subject, "\n".join(lines))
    return SENT


def process_employee_new_shift(job: MailJob, settings: AppSettings) -> str:
    payload = job.payload
    work_date = payload.get("work_date", "")
    return _process_employee_shift(job, settings, f"Sinulle on lisätty uusi työvuoro ({work_date})", [
        "Sinulle on lisätty uusi työvuoro:",
        f"Vuoro: {_describe(payload.get('new_kind'), payload.get('new_hours'))}",
        f"Päivä: {work_date}",
    ])


def process_employee_shift_changed(job: MailJob, settings: AppSettings) -> str:
    payload = job.payload
    work_date = payload.get("work_date", "")
    return _process_employee_shift(job, settings, f"Työvuorosi on muuttunut ({work_date})", [
        "Työvuoroasi on päivitetty:",
        f"Aiemmin: {_describe(payload.get('old_kind'), payload.get('old_hours'))}",
        f"Uusi:    {_describe(payload.get('new_kind'), payload.get('new_hours'))}",
        f"Päivä:   {work_date}",
        "",
        "Jos tämä ei käy, ole yhteydessä esihenkilöön.",
    ])


def process_employee_shift_deleted(job: MailJob, settings: AppSettings) -> str:
    payload = job.payload
    work_date = payload.get("work_date", "")
    return _process_employee_shift(job, settings, f"Vuorosi on peruttu ({work_date})", [
        "Sinulle merkitty työvuoro on poistettu.",
        f"Päivä: {work_date}",
        "",
        "Jos tämä on virhe, ole yhteydessä esihenkilöösi.",
    ])


HANDLERS = {
    MailJob.Type.ADMIN_NEW_ABSENCE: process_admin_new_absence,
    MailJob.Type.EMPLOYEE_NEW_SHIFT: process_employee_new_shift,
    MailJob.Type.EMPLOYEE_SHIFT_CHANGED: process_employee_shift_changed,
    MailJob.Type.EMPLOYEE_SHIFT_DELETED: process_employee_shift_deleted,
}


def process_job(job: MailJob, settings: AppSettings) -> str:
    handler = HANDLERS.get(job.type)
    if handler is None:
        return f"skipped: unknown type {job.type}"
    return handler(job, settings)


def process_queue(limit: int = 25) -> dict:
    """Process up to ``limit`` queued jobs. Returns counts for the run."""
    settings = AppSettings.load()
    jobs = list(
        MailJob.objects.filter(status=MailJob.Status.QUEUED).order_by("created_at", "id")[:limit]
    )
    if not jobs:
        return {"processed": 0, "success": 0, "failed": 0}

    success = 0
    failed = 0
    for job in jobs:
        try:
            outcome = process_job(job, settings)
        except Exception as exc:
            logger.exception("Mail job %s failed", job.pk)
            failed += 1
            job.status = MailJob.Status.FAILED
            job.last_error = str(exc)[:MAX_ERROR_LENGTH]
        else:
            if outcome == SENT:
                success += 1
                job.status = MailJob.Status.SENT
                job.last_error = None
            elif outcome.startswith("skipped"):
                job.status = MailJob.Status.SENT
                job.last_error = outcome
            else:
                failed += 1
                job.status = MailJob.Status.FAILED
                job.last_error = outcome[:MAX_ERROR_LENGTH]

        job.attempt_count += 1
        job.processed_at = timezone.now()
        job.save(update_fields=["status", "attempt_count", "last_error", "processed_at"])

    logger.info("Processed %d mail jobs: %d sent, %d failed", len(jobs), success, failed)
    return {"processed": len(jobs), "success": success, "failed": failed}
