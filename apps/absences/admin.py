"""Django admin configuration for absences app."""

from django.contrib import admin

from .models import AbsenceRequest


@admin.register(AbsenceRequest)
class AbsenceRequestAdmin(admin.ModelAdmin):
    """Admin for absence requests."""
    list_display = ["employee", "start_date", "end_date", "status", "submitted_at", "decided_by"]
    list_filter = ["status", "start_date"]
    search_fields = ["employee__name", "reason"]
    readonly_fields = ["submitted_at", "decided_at", "decided_by"]
    ordering = ["-submitted_at"]
