"""
Tests for the absences application.

This module tests:
- Submitting and deciding absence requests
- Notifications triggered by the workflow
- The absence views
"""

from datetime import date, timedelta
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.core import mail
from django.test import Client, TestCase
from django.urls import reverse

from apps.notifications.models import AppSettings, MailJob, Notification
from apps.scheduling.models import Employee

from .models import AbsenceRequest
from .services import decide_absence_request, submit_absence_request

User = get_user_model()

MONDAY = date(2024, 1, 1)


# =============================================================================
# FACTORY FUNCTIONS
# =============================================================================


def create_user(username="testuser", password="testpass123", **kwargs):
    """Create and return a test user."""
    return User.objects.create_user(username=username, password=password, **kwargs)


def create_employee(name="Aino Virtanen", email="aino@example.com", **kwargs):
    """Create and return a test Employee instance."""
    return Employee.objects.create(name=name, email=email, **kwargs)


def create_absence(employee=None, start_date=MONDAY, end_date=None, **kwargs):
    """Create and return a pending AbsenceRequest directly."""
    if employee is None:
        employee = create_employee()
    return AbsenceRequest.objects.create(
        employee=employee,
        start_date=start_date,
        end_date=end_date or start_date,
        **kwargs,
    )


def save_app_settings(**kwargs):
    """Store notification settings with one admin recipient by default."""
    kwargs.setdefault("admin_notification_emails", ["boss@example.com"])
    app_settings = AppSettings(**kwargs)
    app_settings.save()
    return app_settings


# =============================================================================
# MODEL TESTS
# =============================================================================


class AbsenceRequestModelTests(TestCase):
    """Tests for the AbsenceRequest model."""

    def test_defaults_to_pending(self):
        absence = create_absence()

        self.assertEqual(absence.status, AbsenceRequest.Status.PENDING)
        self.assertTrue(absence.is_pending)

    def test_period_single_day(self):
        absence = create_absence()

        self.assertEqual(absence.period, "2024-01-01")

    def test_period_range(self):
        absence = create_absence(end_date=MONDAY + timedelta(days=2))

        self.assertEqual(absence.period, "2024-01-01–2024-01-03")


# =============================================================================
# SUBMIT TESTS
# =============================================================================


class SubmitAbsenceRequestTests(TestCase):
    """Tests for submit_absence_request."""

    def setUp(self):
        self.employee = create_employee()

    def test_creates_pending_request(self):
        absence = submit_absence_request(
            employee=self.employee,
            start_date=MONDAY,
            end_date=MONDAY + timedelta(days=1),
            reason="  Hammaslääkäri  ",
        )

        self.assertTrue(absence.is_pending)
        self.assertEqual(absence.reason, "Hammaslääkäri")
        self.assertEqual(absence.end_date, MONDAY + timedelta(days=1))

    def test_end_date_defaults_to_start(self):
        absence = submit_absence_request(employee=self.employee, start_date=MONDAY)

        self.assertEqual(absence.end_date, MONDAY)

    def test_end_before_start_is_rejected(self):
        with self.assertRaises(ValueError):
            submit_absence_request(
                employee=self.employee,
                start_date=MONDAY,
                end_date=MONDAY - timedelta(days=1),
            )

        self.assertEqual(AbsenceRequest.objects.count(), 0)

    def test_employee_is_required(self):
        with self.assertRaises(ValueError):
            submit_absence_request(employee=None, start_date=MONDAY)

    def test_queues_admin_email_after_commit(self):
        save_app_settings()

        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            submit_absence_request(employee=self.employee, start_date=MONDAY, reason="Flunssa")

        self.assertEqual(len(callbacks), 1)
        job = MailJob.objects.get()
        self.assertEqual(job.type, MailJob.Type.ADMIN_NEW_ABSENCE)
        self.assertEqual(job.status, MailJob.Status.QUEUED)
        self.assertEqual(job.payload, {
            "employee_id": str(self.employee.pk),
            "start_date": "2024-01-01",
            "end_date": "2024-01-01",
            "reason": "Flunssa",
        })

    def test_no_admin_email_without_recipients(self):
        save_app_settings(admin_notification_emails=[])

        with self.captureOnCommitCallbacks(execute=True):
            absence = submit_absence_request(employee=self.employee, start_date=MONDAY)

        self.assertTrue(absence.is_pending)
        self.assertEqual(MailJob.objects.count(), 0)

    def test_no_admin_email_when_disabled(self):
        save_app_settings(absence_requests=False)

        with self.captureOnCommitCallbacks(execute=True):
            submit_absence_request(employee=self.employee, start_date=MONDAY)

        self.assertEqual(MailJob.objects.count(), 0)


# =============================================================================
# DECIDE TESTS
# =============================================================================


class DecideAbsenceRequestTests(TestCase):
    """Tests for decide_absence_request."""

    def setUp(self):
        self.admin = create_user(username="admin", is_staff=True)
        self.absence = create_absence(end_date=MONDAY + timedelta(days=2))

    def test_approve(self):
        decide_absence_request(self.absence, status="approved", by_user=self.admin)

        self.absence.refresh_from_db()
        self.assertEqual(self.absence.status, AbsenceRequest.Status.APPROVED)
        self.assertEqual(self.absence.decided_by, self.admin)
        self.assertIsNotNone(self.absence.decided_at)

    def test_approve_emails_employee(self):
        decide_absence_request(self.absence, status="approved", by_user=self.admin)

        self.assertEqual(len(mail.outbox), 1)
        message = mail.outbox[0]
        self.assertEqual(message.to, ["aino@example.com"])
        self.assertEqual(message.subject, "Poissaolopyyntösi on hyväksytty (2024-01-01–2024-01-03)")
        self.assertIn("Hei Aino Virtanen", message.body)

    def test_decline_includes_reason(self):
        decide_absence_request(
            self.absence,
            status="declined",
            by_user=self.admin,
            admin_message="Liian monta poissa samaan aikaan",
        )

        body = mail.outbox[0].body
        self.assertTrue(body.startswith("Perustelu:\n\nLiian monta poissa samaan aikaan"))
        self.assertIn("ole yhteydessä esihenkilöön", body)

    def test_decision_logs_notification(self):
        decide_absence_request(self.absence, status="approved", by_user=self.admin)

        notification = Notification.objects.get()
        self.assertEqual(notification.type, "absence_approved")
        self.assertEqual(notification.message, "Aino Virtanen • 2024-01-01–2024-01-03")

    def test_email_failure_does_not_undo_decision(self):
        with patch("apps.notifications.services.send_email", side_effect=ConnectionError("smtp down")):
            decide_absence_request(self.absence, status="approved", by_user=self.admin)

        self.absence.refresh_from_db()
        self.assertEqual(self.absence.status, AbsenceRequest.Status.APPROVED)
        self.assertEqual(Notification.objects.count(), 1)

    def test_no_email_when_notifications_disabled(self):
        save_app_settings(email_notifications=False)

        decide_absence_request(self.absence, status="approved", by_user=self.admin)

        self.assertEqual(len(mail.outbox), 0)

    def test_cannot_decide_twice(self):
        decide_absence_request(self.absence, status="approved", by_user=self.admin)

        with self.assertRaises(ValueError):
            decide_absence_request(self.absence, status="declined", by_user=self.admin)

    def test_invalid_decision(self):
        with self.assertRaises(ValueError):
            decide_absence_request(self.absence, status="pending", by_user=self.admin)

        self.absence.refresh_from_db()
        self.assertTrue(self.absence.is_pending)


# =============================================================================
# VIEW TESTS
# =============================================================================


class AbsenceViewTests(TestCase):
    """Tests for the absence views."""

    def setUp(self):
        self.client = Client()
        self.user = create_user(is_staff=True)
        self.client.login(username="testuser", password="testpass123")
        self.employee = create_employee()

    def test_list_shows_pending_first(self):
        decided = create_absence(employee=self.employee, status=AbsenceRequest.Status.APPROVED)
        pending = create_absence(employee=self.employee, start_date=MONDAY + timedelta(days=7))
        # Decided request is the most recent one
        AbsenceRequest.objects.filter(pk=decided.pk).update(
            submitted_at=pending.submitted_at + timedelta(hours=1)
        )

        response = self.client.get(reverse("absences:list"))

        self.assertEqual(response.status_code, 200)
        self.assertEqual([a.pk for a in response.context["absences"]], [pending.pk, decided.pk])

    def test_add_absence(self):
        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.post(reverse("absences:add"), {
                "employee": str(self.employee.pk),
                "start_date": "2024-01-01",
                "end_date": "2024-01-02",
                "reason": "Muutto",
            })

        self.assertRedirects(response, reverse("absences:list"))
        absence = AbsenceRequest.objects.get()
        self.assertEqual(absence.employee, self.employee)
        self.assertEqual(absence.end_date, date(2024, 1, 2))

    def test_add_absence_validation_errors(self):
        response = self.client.post(reverse("absences:add"), {
            "employee": "",
            "start_date": "yesterday",
        })

        self.assertEqual(response.status_code, 200)
        errors = response.context["errors"]
        self.assertIn("Työntekijä on pakollinen", errors)
        self.assertIn("Alkupäivä ei ole kelvollinen päivämäärä", errors)
        self.assertEqual(AbsenceRequest.objects.count(), 0)

    def test_add_absence_unknown_employee_id(self):
        response = self.client.post(reverse("absences:add"), {
            "employee": "not-a-uuid",
            "start_date": "2024-01-01",
        })

        self.assertIn("Työntekijä on pakollinen", response.context["errors"])

    def test_add_absence_end_before_start(self):
        response = self.client.post(reverse("absences:add"), {
            "employee": str(self.employee.pk),
            "start_date": "2024-01-05",
            "end_date": "2024-01-01",
        })

        self.assertIn("Loppupäivä ei voi olla ennen alkupäivää", response.context["errors"])

    def test_approve_view(self):
        absence = create_absence(employee=self.employee)

        response = self.client.post(
            reverse("absences:approve", kwargs={"pk": absence.pk}),
            {"admin_message": "Hyvää lomaa"},
        )

        self.assertRedirects(response, reverse("absences:list"))
        absence.refresh_from_db()
        self.assertEqual(absence.status, AbsenceRequest.Status.APPROVED)
        self.assertEqual(absence.admin_message, "Hyvää lomaa")
        self.assertEqual(absence.decided_by, self.user)

    def test_decline_view(self):
        absence = create_absence(employee=self.employee)

        self.client.post(reverse("absences:decline", kwargs={"pk": absence.pk}))

        absence.refresh_from_db()
        self.assertEqual(absence.status, AbsenceRequest.Status.DECLINED)

    def test_decide_already_decided_shows_error(self):
        absence = create_absence(employee=self.employee, status=AbsenceRequest.Status.DECLINED)

        response = self.client.post(reverse("absences:approve", kwargs={"pk": absence.pk}), follow=True)

        self.assertContains(response, "Pyyntö on jo käsitelty")
        absence.refresh_from_db()
        self.assertEqual(absence.status, AbsenceRequest.Status.DECLINED)

    def test_non_staff_cannot_decide(self):
        create_user(username="worker")
        self.client.login(username="worker", password="testpass123")
        absence = create_absence(employee=self.employee)

        self.client.post(reverse("absences:approve", kwargs={"pk": absence.pk}))

        absence.refresh_from_db()
        self.assertTrue(absence.is_pending)

    def test_decide_requires_post(self):
        absence = create_absence(employee=self.employee)

        response = self.client.get(reverse("absences:approve", kwargs={"pk": absence.pk}))

        self.assertEqual(response.status_code, 405)
