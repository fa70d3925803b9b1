"""Outgoing email through Django's mail backend."""

from __future__ import annotations

from django.conf import settings
from django.core.mail import send_mail

SIGNATURE = "Terveisin,\nVuorolista"


def format_period(start: str, end: str | None) -> str:
    """``start`` alone, or ``start–end`` when the period spans several days."""
    if end and end != start:
        return f"{start}–{end}"
    return start


def send_email(to: str | list[str], subject: str, text: str) -> None:
    """Send a plain text email. Errors propagate to the caller."""
    recipients = [to] if isinstance(to, str) else list(to)
    if not recipients:
        raise ValueError("No recipients")
    send_mail(
        subject=subject,
        message=text,
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=recipients,
        fail_silently=False,
    )
