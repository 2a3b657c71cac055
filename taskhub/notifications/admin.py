from django.contrib import admin

from taskhub.notifications import models


@admin.register(models.Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ["id", "recipient", "title", "notification_type", "is_read"]
    search_fields = ["title", "message", "notification_type"]
    list_filter = ["notification_type", "is_read", "priority", "created_at"]
    raw_id_fields = ["recipient", "sender", "task", "project", "comment"]
