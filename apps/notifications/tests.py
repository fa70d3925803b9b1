"""
Tests for the notifications application.

This module tests:
- AppSettings and the mailer helpers
- Queue producers (services)
- The queue dispatcher and process_mail_jobs command
- Web push delivery and subscription endpoints
- Settings and notification views
"""

import json
from datetime import date, timedelta
from io import StringIO
from unittest.mock import Mock, patch

from django.contrib.auth import get_user_model
from django.core import mail
from django.core.management import call_command
from django.db import DatabaseError
from django.test import Client, SimpleTestCase, TestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from pywebpush import WebPushException

from apps.scheduling.editor import ShiftChange, ShiftEntry, ShiftKind
from apps.scheduling.models import Employee

from . import dispatcher
from .dispatcher import process_queue
from .mailer import format_period
from .models import AppSettings, MailJob, Notification, PushSubscription
from .push import send_push
from .services import (
    NotifyOutcome,
    enqueue_admin_new_absence,
    enqueue_job,
    enqueue_shift_changes,
)

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


def save_app_settings(**kwargs):
    """Store notification settings with one admin recipient by default."""
    kwargs.setdefault("admin_notification_emails", ["boss@example.com"])
    app_settings = AppSettings(**kwargs)
    app_settings.save()
    return app_settings


def create_job(job_type=MailJob.Type.ADMIN_NEW_ABSENCE, payload=None, **kwargs):
    """Create and return a queued MailJob."""
    return MailJob.objects.create(type=job_type, payload=payload or {}, **kwargs)


# =============================================================================
# MODEL AND MAILER TESTS
# =============================================================================


class AppSettingsModelTests(TestCase):
    """Tests for the AppSettings singleton."""

    def test_load_returns_defaults_without_row(self):
        app_settings = AppSettings.load()

        self.assertIsNone(app_settings._state.db)
        self.assertTrue(app_settings.email_notifications)
        self.assertEqual(app_settings.recipients, [])

    def test_save_always_uses_pk_one(self):
        AppSettings(email_notifications=False).save()
        AppSettings(email_notifications=True).save()

        self.assertEqual(AppSettings.objects.count(), 1)
        self.assertTrue(AppSettings.load().email_notifications)

    def test_recipients_ignores_blank_and_non_string_values(self):
        app_settings = AppSettings(admin_notification_emails=[" a@example.com ", "", 42, "b@example.com"])

        self.assertEqual(app_settings.recipients, ["a@example.com", "b@example.com"])

    def test_recipients_with_malformed_value(self):
        app_settings = AppSettings(admin_notification_emails="a@example.com")

        self.assertEqual(app_settings.recipients, [])


class MailerTests(SimpleTestCase):
    """Tests for the mailer helpers."""

    def test_format_period_single_day(self):
        self.assertEqual(format_period("2024-01-01", None), "2024-01-01")
        self.assertEqual(format_period("2024-01-01", "2024-01-01"), "2024-01-01")

    def test_format_period_range(self):
        self.assertEqual(format_period("2024-01-01", "2024-01-03"), "2024-01-01–2024-01-03")


# =============================================================================
# SERVICE TESTS
# =============================================================================


class EnqueueJobTests(TestCase):
    """Tests for enqueue_job and enqueue_admin_new_absence."""

    def test_enqueue_job(self):
        outcome = enqueue_job("custom", {"a": 1})

        self.assertEqual(outcome, NotifyOutcome.QUEUED)
        job = MailJob.objects.get()
        self.assertEqual(job.status, MailJob.Status.QUEUED)
        self.assertEqual(job.attempt_count, 0)

    def test_enqueue_job_database_error(self):
        with patch.object(MailJob.objects, "create", side_effect=DatabaseError("readonly")):
            outcome = enqueue_job("custom", {})

        self.assertEqual(outcome, NotifyOutcome.FAILED)

    def test_admin_new_absence_queued(self):
        save_app_settings()

        outcome = enqueue_admin_new_absence(employee_id="e1", start_date="2024-01-01")

        self.assertEqual(outcome, NotifyOutcome.QUEUED)
        self.assertEqual(MailJob.objects.get().payload["employee_id"], "e1")

    def test_admin_new_absence_skipped(self):
        cases = [
            {"email_notifications": False},
            {"absence_requests": False},
            {"admin_notification_emails": []},
        ]
        for overrides in cases:
            with self.subTest(**{k: str(v) for k, v in overrides.items()}):
                save_app_settings(**overrides)

                outcome = enqueue_admin_new_absence(employee_id="e1", start_date="2024-01-01")

                self.assertEqual(outcome, NotifyOutcome.SKIPPED)

        self.assertEqual(MailJob.objects.count(), 0)


class EnqueueShiftChangesTests(TestCase):
    """Tests for enqueue_shift_changes."""

    def setUp(self):
        self.before = ShiftEntry("e1", MONDAY, ShiftKind.NORMAL, 8.0)
        self.after = ShiftEntry("e1", MONDAY, ShiftKind.ABSENT, None)

    def test_one_job_per_change(self):
        changes = [
            ShiftChange(ShiftChange.NEW, None, ShiftEntry("e2", MONDAY, ShiftKind.NORMAL, 6.0)),
            ShiftChange(ShiftChange.CHANGED, self.before, self.after),
            ShiftChange(ShiftChange.DELETED, self.before, None),
        ]

        outcome = enqueue_shift_changes(changes)

        self.assertEqual(outcome, NotifyOutcome.QUEUED)
        types = list(MailJob.objects.values_list("type", flat=True))
        self.assertEqual(types, [
            MailJob.Type.EMPLOYEE_NEW_SHIFT,
            MailJob.Type.EMPLOYEE_SHIFT_CHANGED,
            MailJob.Type.EMPLOYEE_SHIFT_DELETED,
        ])

    def test_payload_describes_change(self):
        enqueue_shift_changes([ShiftChange(ShiftChange.CHANGED, self.before, self.after)])

        self.assertEqual(MailJob.objects.get().payload, {
            "employee_id": "e1",
            "work_date": "2024-01-01",
            "old_kind": "normal",
            "old_hours": 8.0,
            "new_kind": "absent",
            "new_hours": None,
        })

    def test_no_changes(self):
        self.assertEqual(enqueue_shift_changes([]), NotifyOutcome.SKIPPED)

    def test_skipped_when_schedule_changes_disabled(self):
        save_app_settings(schedule_changes=False)

        outcome = enqueue_shift_changes([ShiftChange(ShiftChange.DELETED, self.before, None)])

        self.assertEqual(outcome, NotifyOutcome.SKIPPED)
        self.assertEqual(MailJob.objects.count(), 0)


# =============================================================================
# DISPATCHER TESTS
# =============================================================================


class ProcessQueueTests(TestCase):
    """Tests for the mail queue dispatcher."""

    def setUp(self):
        self.employee = create_employee()
        self.app_settings = save_app_settings()

    def test_empty_queue(self):
        self.assertEqual(process_queue(), {"processed": 0, "success": 0, "failed": 0})

    def test_admin_new_absence_sends_to_recipients(self):
        job = create_job(payload={
            "employee_id": str(self.employee.pk),
            "start_date": "2024-01-01",
            "end_date": "2024-01-03",
            "reason": "Kurssi",
        })

        result = process_queue()

        self.assertEqual(result, {"processed": 1, "success": 1, "failed": 0})
        message = mail.outbox[0]
        self.assertEqual(message.to, ["boss@example.com"])
        self.assertEqual(message.subject, "Uusi poissaolopyyntö: Aino Virtanen (2024-01-01–2024-01-03)")
        self.assertIn("Ajankohta: 2024-01-01 – 2024-01-03", message.body)
        self.assertIn("Syy: Kurssi", message.body)
        job.refresh_from_db()
        self.assertEqual(job.status, MailJob.Status.SENT)
        self.assertEqual(job.attempt_count, 1)
        self.assertIsNotNone(job.processed_at)
        self.assertIsNone(job.last_error)

    @override_settings(DASHBOARD_URL="https://vuorot.example.com/absences/")
    def test_admin_email_links_dashboard(self):
        create_job(payload={"employee_id": str(self.employee.pk), "start_date": "2024-01-01"})

        process_queue()

        self.assertIn("Avaa hallinta: https://vuorot.example.com/absences/", mail.outbox[0].body)

    def test_employee_shift_changed_email(self):
        create_job(MailJob.Type.EMPLOYEE_SHIFT_CHANGED, {
            "employee_id": str(self.employee.pk),
            "work_date": "2024-01-01",
            "old_kind": "normal",
            "old_hours": 8.0,
            "new_kind": "holiday",
            "new_hours": None,
        })

        process_queue()

        message = mail.outbox[0]
        self.assertEqual(message.to, ["aino@example.com"])
        self.assertEqual(message.subject, "Työvuorosi on muuttunut (2024-01-01)")
        self.assertIn("Aiemmin: 8 h", message.body)
        self.assertIn("Uusi:    Loma", message.body)
        self.assertTrue(message.body.endswith("Terveisin,\nVuorolista"))

    def test_employee_new_and_deleted_shift_emails(self):
        payload = {"employee_id": str(self.employee.pk), "work_date": "2024-01-02", "new_hours": 6.5}
        create_job(MailJob.Type.EMPLOYEE_NEW_SHIFT, payload)
        create_job(MailJob.Type.EMPLOYEE_SHIFT_DELETED, payload)

        result = process_queue()

        self.assertEqual(result["success"], 2)
        subjects = [m.subject for m in mail.outbox]
        self.assertEqual(subjects, [
            "Sinulle on lisätty uusi työvuoro (2024-01-02)",
            "Vuorosi on peruttu (2024-01-02)",
        ])
        self.assertIn("Vuoro: 6.5 h", mail.outbox[0].body)

    def test_skipped_job_is_closed_with_reason(self):
        job = create_job("unknown_type")

        result = process_queue()

        self.assertEqual(result, {"processed": 1, "success": 0, "failed": 0})
        job.refresh_from_db()
        self.assertEqual(job.status, MailJob.Status.SENT)
        self.assertEqual(job.last_error, "skipped: unknown type unknown_type")
        self.assertEqual(len(mail.outbox), 0)

    def test_skipped_when_settings_disabled_at_send_time(self):
        job = create_job(MailJob.Type.EMPLOYEE_NEW_SHIFT, {"employee_id": str(self.employee.pk)})
        self.app_settings.schedule_changes = False
        self.app_settings.save()

        process_queue()

        job.refresh_from_db()
        self.assertEqual(job.last_error, "skipped: schedule_changes=false")

    def test_skipped_for_missing_employee(self):
        job = create_job(MailJob.Type.EMPLOYEE_NEW_SHIFT, {"employee_id": None})

        process_queue()

        job.refresh_from_db()
        self.assertEqual(job.last_error, "skipped: no employee_id")

    def test_failed_send_marks_job_failed(self):
        job = create_job(payload={"employee_id": str(self.employee.pk), "start_date": "2024-01-01"})

        with patch.object(dispatcher, "send_email", side_effect=ConnectionError("x" * 600)):
            result = process_queue()

        self.assertEqual(result, {"processed": 1, "success": 0, "failed": 1})
        job.refresh_from_db()
        self.assertEqual(job.status, MailJob.Status.FAILED)
        self.assertEqual(len(job.last_error), 500)
        self.assertEqual(job.attempt_count, 1)

    def test_failed_jobs_are_not_retried(self):
        create_job(status=MailJob.Status.FAILED)

        self.assertEqual(process_queue()["processed"], 0)

    def test_limit_and_order(self):
        now = timezone.now()
        newest = create_job("unknown_type", created_at=now)
        oldest = create_job("unknown_type", created_at=now - timedelta(minutes=5))

        result = process_queue(limit=1)

        self.assertEqual(result["processed"], 1)
        oldest.refresh_from_db()
        newest.refresh_from_db()
        self.assertEqual(oldest.status, MailJob.Status.SENT)
        self.assertEqual(newest.status, MailJob.Status.QUEUED)


class ProcessMailJobsCommandTests(TestCase):
    """Tests for the process_mail_jobs management command."""

    def test_command_reports_counts(self):
        save_app_settings()
        employee = create_employee()
        create_job(payload={"employee_id": str(employee.pk), "start_date": "2024-01-01"})
        create_job("unknown_type")
        out = StringIO()

        call_command("process_mail_jobs", "--limit", "5", stdout=out)

        self.assertIn("Processed 2 jobs (1 sent, 0 failed)", out.getvalue())
        self.assertEqual(MailJob.objects.filter(status=MailJob.Status.QUEUED).count(), 0)


# =============================================================================
# PUSH TESTS
# =============================================================================

VAPID_KEYS = {"VAPID_PUBLIC_KEY": "BPublicKey", "VAPID_PRIVATE_KEY": "private-key"}


def create_subscription(endpoint="https://push.example.com/send/abc", **kwargs):
    """Create and return a PushSubscription."""
    kwargs.setdefault("p256dh", "p256dh-key")
    kwargs.setdefault("auth", "auth-secret")
    return PushSubscription.objects.create(endpoint=endpoint, **kwargs)


@override_settings(**VAPID_KEYS, VAPID_SUBJECT="mailto:boss@example.com")
class SendPushTests(TestCase):
    """Tests for send_push."""

    def setUp(self):
        self.active = create_subscription()
        create_subscription("https://push.example.com/send/old", is_active=False)

    @override_settings(VAPID_PRIVATE_KEY="")
    def test_disabled_without_vapid_keys(self):
        with patch("apps.notifications.push.webpush") as webpush:
            self.assertEqual(send_push("Otsikko", "Viesti"), {"sent": 0, "failed": 0})

        webpush.assert_not_called()

    def test_sends_to_active_subscriptions(self):
        with patch("apps.notifications.push.webpush") as webpush:
            result = send_push("Uusi poissaolopyyntö", "Aino Virtanen • 2024-01-01", url="/absences/")

        self.assertEqual(result, {"sent": 1, "failed": 0})
        kwargs = webpush.call_args.kwargs
        self.assertEqual(kwargs["subscription_info"], {
            "endpoint": "https://push.example.com/send/abc",
            "keys": {"p256dh": "p256dh-key", "auth": "auth-secret"},
        })
        self.assertEqual(kwargs["vapid_private_key"], "private-key")
        self.assertEqual(kwargs["vapid_claims"], {"sub": "mailto:boss@example.com"})
        self.assertEqual(json.loads(kwargs["data"]), {
            "title": "Uusi poissaolopyyntö",
            "body": "Aino Virtanen • 2024-01-01",
            "data": {"url": "/absences/"},
        })

    def test_gone_subscription_is_deactivated(self):
        error = WebPushException("Push failed: 410 Gone", response=Mock(status_code=410))

        with patch("apps.notifications.push.webpush", side_effect=error):
            result = send_push("Otsikko", "Viesti")

        self.assertEqual(result, {"sent": 0, "failed": 1})
        self.active.refresh_from_db()
        self.assertFalse(self.active.is_active)
        self.assertIn("410", self.active.last_error)

    def test_other_failure_keeps_subscription(self):
        error = WebPushException("Push failed: 500", response=Mock(status_code=500))
        create_subscription("https://push.example.com/send/second")

        with patch("apps.notifications.push.webpush", side_effect=[error, None]):
            result = send_push("Otsikko", "Viesti")

        self.assertEqual(result, {"sent": 1, "failed": 1})
        self.active.refresh_from_db()
        self.assertTrue(self.active.is_active)
        self.assertIsNotNone(self.active.last_error)


class AbsencePushTests(TestCase):
    """Pushing new absence requests through the queue."""

    def setUp(self):
        self.employee = create_employee()

    @override_settings(DASHBOARD_URL="")
    def test_pushed_even_when_email_is_off(self):
        save_app_settings(email_notifications=False)
        job = create_job(payload={"employee_id": str(self.employee.pk), "start_date": "2024-01-01"})

        with patch.object(dispatcher, "send_push") as push:
            process_queue()

        push.assert_called_once_with("Uusi poissaolopyyntö", "Aino Virtanen • 2024-01-01", url="/")
        job.refresh_from_db()
        self.assertEqual(job.last_error, "skipped: email_notifications=false")
        self.assertEqual(len(mail.outbox), 0)

    def test_not_pushed_when_absence_requests_disabled(self):
        save_app_settings(absence_requests=False)
        create_job(payload={"employee_id": str(self.employee.pk), "start_date": "2024-01-01"})

        with patch.object(dispatcher, "send_push") as push:
            process_queue()

        push.assert_not_called()

    @override_settings(**VAPID_KEYS)
    def test_enqueued_for_push_without_email_recipients(self):
        save_app_settings(admin_notification_emails=[])

        outcome = enqueue_admin_new_absence(employee_id=str(self.employee.pk), start_date="2024-01-01")

        self.assertEqual(outcome, NotifyOutcome.QUEUED)


class PushSubscriptionViewTests(TestCase):
    """Tests for the push subscription endpoints and the service worker."""

    def setUp(self):
        self.client = Client()
        self.user = create_user()
        self.client.login(username="testuser", password="testpass123")
        self.subscription = {
            "endpoint": "https://push.example.com/send/abc",
            "keys": {"p256dh": "p256dh-key", "auth": "auth-secret"},
        }

    def post_json(self, name, data):
        body = data if isinstance(data, str) else json.dumps(data)
        return self.client.post(reverse(name), data=body, content_type="application/json")

    def test_subscribe_creates_subscription(self):
        response = self.post_json("notifications:push_subscribe", self.subscription)

        self.assertEqual(response.status_code, 201)
        subscription = PushSubscription.objects.get()
        self.assertEqual(subscription.user, self.user)
        self.assertEqual(subscription.auth, "auth-secret")
        self.assertTrue(subscription.is_active)

    def test_resubscribe_reactivates(self):
        create_subscription(is_active=False, last_error="410 Gone", p256dh="old")

        response = self.post_json("notifications:push_subscribe", self.subscription)

        self.assertEqual(response.status_code, 200)
        subscription = PushSubscription.objects.get()
        self.assertTrue(subscription.is_active)
        self.assertEqual(subscription.p256dh, "p256dh-key")
        self.assertIsNone(subscription.last_error)

    def test_subscribe_rejects_invalid_payloads(self):
        cases = [
            "not json",
            [],
            {"endpoint": "https://push.example.com/send/abc"},
            {**self.subscription, "endpoint": "http://push.example.com/send/abc"},
            {**self.subscription, "keys": {"p256dh": "", "auth": "x"}},
        ]
        for data in cases:
            with self.subTest(data=data):
                response = self.post_json("notifications:push_subscribe", data)

                self.assertEqual(response.status_code, 400)

        self.assertFalse(PushSubscription.objects.exists())

    def test_subscribe_requires_login(self):
        self.client.logout()

        response = self.post_json("notifications:push_subscribe", self.subscription)

        self.assertEqual(response.status_code, 302)
        self.assertFalse(PushSubscription.objects.exists())

    def test_unsubscribe(self):
        create_subscription()

        response = self.post_json("notifications:push_unsubscribe", {"endpoint": self.subscription["endpoint"]})

        self.assertEqual(response.json(), {"ok": True, "deactivated": 1})
        self.assertFalse(PushSubscription.objects.get().is_active)

    def test_service_worker_served_from_root(self):
        response = self.client.get("/sw.js")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response["Content-Type"], "application/javascript")
        self.assertContains(response, "showNotification")


# =============================================================================
# VIEW TESTS
# =============================================================================


class SettingsViewTests(TestCase):
    """Tests for settings_view."""

    def setUp(self):
        self.client = Client()
        self.admin = User.objects.create_superuser(username="admin", password="adminpass123")
        self.client.login(username="admin", password="adminpass123")

    def test_get_settings(self):
        response = self.client.get(reverse("notifications:settings"))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context["queued_count"], 0)
        self.assertEqual(response.context["recipients_text"], "")

    def test_non_superuser_is_redirected(self):
        create_user()
        self.client.login(username="testuser", password="testpass123")

        response = self.client.get(reverse("notifications:settings"))

        self.assertRedirects(response, reverse("scheduling:grid"))

    def test_save_settings(self):
        response = self.client.post(reverse("notifications:settings"), {
            "email_notifications": "on",
            "schedule_changes": "on",
            "admin_notification_emails": "boss@example.com, hr@example.com,",
        })

        self.assertTrue(response.context["saved"])
        app_settings = AppSettings.load()
        self.assertTrue(app_settings.email_notifications)
        self.assertFalse(app_settings.absence_requests)
        self.assertEqual(app_settings.recipients, ["boss@example.com", "hr@example.com"])

    def test_invalid_recipient_is_rejected(self):
        response = self.client.post(reverse("notifications:settings"), {
            "email_notifications": "on",
            "admin_notification_emails": "boss@example.com, nope",
        })

        self.assertFalse(response.context["saved"])
        self.assertEqual(response.context["errors"], ["Sähköposti 'nope' ei ole kelvollinen"])
        self.assertFalse(AppSettings.objects.exists())

    def test_push_section_without_keys(self):
        response = self.client.get(reverse("notifications:settings"))

        self.assertContains(response, "VAPID-avaimet puuttuvat")
        self.assertNotContains(response, 'id="push-subscribe"')

    @override_settings(**VAPID_KEYS)
    def test_push_section_with_keys(self):
        create_subscription(user=self.admin)

        response = self.client.get(reverse("notifications:settings"))

        self.assertContains(response, 'data-key="BPublicKey"')
        self.assertEqual(response.context["push_subscriptions"], 1)

    def test_failed_jobs_listed(self):
        create_job(status=MailJob.Status.FAILED, last_error="boom", processed_at=timezone.now())

        response = self.client.get(reverse("notifications:settings"))

        self.assertContains(response, "boom")


class NotificationViewTests(TestCase):
    """Tests for the notification log views."""

    def setUp(self):
        self.client = Client()
        create_user()
        self.client.login(username="testuser", password="testpass123")

    def test_list(self):
        Notification.objects.create(type="absence_approved", title="Poissaolo hyväksytty")

        response = self.client.get(reverse("notifications:list"))

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, "Poissaolo hyväksytty")
        self.assertEqual(response.context["unread_notifications"], 1)

    def test_mark_all_read(self):
        Notification.objects.create(type="absence_approved", title="A")
        Notification.objects.create(type="absence_declined", title="B")

        response = self.client.post(reverse("notifications:mark_all_read"))

        self.assertRedirects(response, reverse("notifications:list"))
        self.assertFalse(Notification.objects.filter(is_read=False).exists())
