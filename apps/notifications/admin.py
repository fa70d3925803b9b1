"""Django admin configuration for notifications app."""

from django.contrib import admin

from .models import AppSettings, MailJob, Notification, PushSubscription


@admin.register(AppSettings)
class AppSettingsAdmin(admin.ModelAdmin):
    list_display = ["email_notifications", "absence_requests", "schedule_changes", "updated_at"]


@admin.register(MailJob)
class MailJobAdmin(admin.ModelAdmin):
    """Admin for the mail queue (read-only)."""
    list_display = ["id", "type", "status", "attempt_count", "created_at", "processed_at"]
    list_filter = ["status", "type"]
    readonly_fields = ["type", "payload", "created_at", "processed_at", "attempt_count", "last_error"]
    ordering = ["-created_at"]

    def has_add_permission(self, request):
        return False


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ["created_at", "type", "title", "is_read"]
    list_filter = ["type", "is_read"]
    ordering = ["-created_at"]


@admin.register(PushSubscription)
class PushSubscriptionAdmin(admin.ModelAdmin):
    list_display = ["id", "user", "is_active", "created_at"]
    list_filter = ["is_active"]
    readonly_fields = ["endpoint", "p256dh", "auth", "created_at", "last_error"]
