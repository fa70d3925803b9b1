"""
URL configuration for Vuorolista project.

The grid lives at the site root; absences, notifications and the REST API
are mounted under their own prefixes.
"""

from django.conf import settings
from django.contrib import admin
from django.urls import include, path

from apps.notifications.views import service_worker

urlpatterns = [
    # Django admin
    path("admin/", admin.site.urls),
    # Authentication
    path("", include("django.contrib.auth.urls")),
    # Push service worker (root scope)
    path("sw.js", service_worker, name="service_worker"),
    # Main application
    path("", include("apps.scheduling.urls", namespace="scheduling")),
    path("absences/", include("apps.absences.urls", namespace="absences")),
    path("notifications/", include("apps.notifications.urls", namespace="notifications")),
    # REST API
    path("api/", include("apps.api.urls", namespace="api")),
]

if settings.DEBUG:
    from django.conf.urls.static import static

    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
