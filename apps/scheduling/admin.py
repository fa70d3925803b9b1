"""Django admin configuration for scheduling app."""

from django.contrib import admin

from .models import Employee, PersonalAccessToken, Shift


@admin.register(Employee)
class EmployeeAdmin(admin.ModelAdmin):
    """Admin for managing employees."""
    list_display = ["name", "email", "department", "is_active"]
    list_filter = ["is_active", "department"]
    list_editable = ["is_active"]
    search_fields = ["name", "email"]
    ordering = ["name"]


@admin.register(Shift)
class ShiftAdmin(admin.ModelAdmin):
    """Admin for persisted shifts."""
    list_display = ["work_date", "employee", "kind", "hours", "updated_at"]
    list_filter = ["kind", "work_date"]
    search_fields = ["employee__name", "employee__email"]
    date_hierarchy = "work_date"
    ordering = ["-work_date"]


@admin.register(PersonalAccessToken)
class PersonalAccessTokenAdmin(admin.ModelAdmin):
    """Admin for API tokens."""
    list_display = ["label", "user", "created_at", "expires_at", "last_used_at"]
    list_filter = ["user"]
    search_fields = ["label", "user__username"]
    readonly_fields = ["token_hash", "created_at", "last_used_at"]
