"""
Context processors for the Vuorolista project.
"""

from django.conf import settings


def app_info(request):
    """
    Add version and navigation badge counts to template context.

    Returns:
        dict with 'app_version', 'pending_absences' and 'unread_notifications'
    """
    context = {
        "app_version": settings.APP_VERSION,
        "pending_absences": 0,
        "unread_notifications": 0,
    }

    user = getattr(request, "user", None)
    if user is not None and user.is_authenticated:
        from apps.absences.models import AbsenceRequest
        from apps.notifications.models import Notification

        context["pending_absences"] = AbsenceRequest.objects.filter(
            status=AbsenceRequest.Status.PENDING
        ).count()
        context["unread_notifications"] = Notification.objects.filter(is_read=False).count()

    return context
