"""
Web push to registered browsers.

Pushes are best effort: every active subscription is tried, failures are
counted and logged, and endpoints the push service reports as gone (404/410)
are deactivated. Nothing is sent unless VAPID keys are configured.
"""

from __future__ import annotations

import json
import logging

from django.conf import settings
from pywebpush import WebPushException, webpush

from .models import PushSubscription

logger = logging.getLogger(__name__)

GONE_STATUSES = (404, 410)
MAX_ERROR_LENGTH = 500


def push_enabled() -> bool:
    return bool(settings.VAPID_PUBLIC_KEY and settings.VAPID_PRIVATE_KEY)


def send_push(title: str, body: str, url: str = "/") -> dict:
    """Send one notification to every active subscription. Returns counts."""
    if not push_enabled():
        return {"sent": 0, "failed": 0}

    data = json.dumps({"title": title, "body": body, "data": {"url": url}})
    sent = 0
    failed = 0
    for subscription in PushSubscription.objects.filter(is_active=True):
        try:
            webpush(
                subscription_info=subscription.as_subscription_info(),
                data=data,
                vapid_private_key=settings.VAPID_PRIVATE_KEY,
                vapid_claims={"sub": settings.VAPID_SUBJECT},
                timeout=settings.PUSH_TIMEOUT,
            )
        except WebPushException as exc:
            failed += 1
            status = getattr(exc.response, "status_code", None)
            subscription.last_error = str(exc)[:MAX_ERROR_LENGTH]
            if status in GONE_STATUSES:
                subscription.is_active = False
                logger.info("Deactivated expired push subscription %s", subscription.pk)
            else:
                logger.warning("Push to subscription %s failed: %s", subscription.pk, exc)
            subscription.save(update_fields=["is_active", "last_error"])
        else:
            sent += 1

    logger.info("Push '%s': %d sent, %d failed", title, sent, failed)
    return {"sent": sent, "failed": failed}
