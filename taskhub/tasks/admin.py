from django.contrib import admin

from taskhub.tasks import models


class SubtaskInline(admin.TabularInline):
    model = models.Subtask
    extra = 0
    raw_id_fields = ["assigned_to"]


@admin.register(models.Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = ["id", "title", "project", "status", "priority", "due_date"]
    search_fields = ["title", "description"]
    list_filter = ["status", "priority", "is_archived"]
    raw_id_fields = ["project", "creator", "assignees"]
    readonly_fields = ["comment_count", "completed_at"]
    inlines = [SubtaskInline]
