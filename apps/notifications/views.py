"""Views for notification settings, the in-app notification log and web push."""

from __future__ import annotations

import json
import logging

from django.conf import settings as django_settings
from django.contrib.auth.decorators import login_required
from django.core.exceptions import ValidationError
from django.core.validators import URLValidator, validate_email
from django.http import HttpRequest, HttpResponse, JsonResponse
from django.shortcuts import redirect, render
from django.views.decorators.http import require_GET, require_POST, require_http_methods

from .models import AppSettings, MailJob, Notification, PushSubscription

logger = logging.getLogger(__name__)


def _parse_recipients(raw: str) -> tuple[list[str], list[str]]:
    """Split a comma separated list into valid addresses and errors."""
    emails, errors = [], []
    for part in raw.split(","):
        email = part.strip()
        if not email:
            continue
        try:
            validate_email(email)
        except ValidationError:
            errors.append(f"Sähköposti '{email}' ei ole kelvollinen")
        else:
            emails.append(email)
    return emails, errors


@login_required
@require_http_methods(["GET", "POST"])
def settings_view(request: HttpRequest) -> HttpResponse:
    """Edit notification settings. Superuser only."""
    if not request.user.is_superuser:
        return redirect("scheduling:grid")

    app_settings = AppSettings.load()
    errors = []
    saved = False

    if request.method == "POST":
        recipients, errors = _parse_recipients(request.POST.get("admin_notification_emails", ""))
        if not errors:
            app_settings.email_notifications = request.POST.get("email_notifications") == "on"
            app_settings.absence_requests = request.POST.get("absence_requests") == "on"
            app_settings.schedule_changes = request.POST.get("schedule_changes") == "on"
            app_settings.admin_notification_emails = recipients
            app_settings.save()
            saved = True

    return render(request, "notifications/settings.html", {
        "app_settings": app_settings,
        "recipients_text": request.POST.get("admin_notification_emails") if errors
        else ", ".join(app_settings.recipients),
        "errors": errors,
        "saved": saved,
        "queued_count": MailJob.objects.filter(status=MailJob.Status.QUEUED).count(),
        "failed_jobs": MailJob.objects.filter(status=MailJob.Status.FAILED).order_by("-processed_at")[:10],
        "vapid_public_key": django_settings.VAPID_PUBLIC_KEY,
        "push_subscriptions": PushSubscription.objects.filter(user=request.user, is_active=True).count(),
    })


@login_required
@require_GET
def notification_list(request: HttpRequest) -> HttpResponse:
    """Recent in-app notifications."""
    notifications = Notification.objects.all()[:100]
    return render(request, "notifications/list.html", {"notifications": notifications})


@login_required
@require_POST
def mark_all_read(request: HttpRequest) -> HttpResponse:
    Notification.objects.filter(is_read=False).update(is_read=True)
    return redirect("notifications:list")


# =============================================================================
# Web push
# =============================================================================

def _json_body(request: HttpRequest) -> dict | None:
    try:
        data = json.loads(request.body or b"{}")
    except (UnicodeDecodeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


@login_required
@require_POST
def push_subscribe(request: HttpRequest) -> HttpResponse:
    """Register (or reactivate) the browser's PushSubscription JSON."""
    data = _json_body(request)
    keys = data.get("keys") if data else None
    if not data or not isinstance(keys, dict):
        return JsonResponse({"error": "Virheellinen tilaus"}, status=400)

    endpoint = data.get("endpoint") or ""
    p256dh = keys.get("p256dh") or ""
    auth = keys.get("auth") or ""
    try:
        URLValidator(schemes=["https"])(endpoint)
    except ValidationError:
        return JsonResponse({"error": "Virheellinen endpoint"}, status=400)
    if not p256dh or not auth:
        return JsonResponse({"error": "Avaimet puuttuvat"}, status=400)

    subscription, created = PushSubscription.objects.update_or_create(
        endpoint=endpoint,
        defaults={"user": request.user, "p256dh": p256dh, "auth": auth, "is_active": True, "last_error": None},
    )
    logger.info("Push subscription %s %s", subscription.pk, "created" if created else "updated")
    return JsonResponse({"ok": True}, status=201 if created else 200)


@login_required
@require_POST
def push_unsubscribe(request: HttpRequest) -> HttpResponse:
    data = _json_body(request)
    if not data or not data.get("endpoint"):
        return JsonResponse({"error": "Virheellinen tilaus"}, status=400)
    updated = PushSubscription.objects.filter(endpoint=data["endpoint"]).update(is_active=False)
    return JsonResponse({"ok": True, "deactivated": updated})


@require_GET
def service_worker(request: HttpRequest) -> HttpResponse:
    """Service worker script, served from the site root so its scope is ``/``."""
    return render(request, "notifications/sw.js", content_type="application/javascript")
