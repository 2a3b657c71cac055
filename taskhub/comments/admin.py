from django.contrib import admin

from taskhub.comments import models


@admin.register(models.Comment)
class CommentAdmin(admin.ModelAdmin):
    list_display = ["id", "task", "author", "lifecycle", "is_edited", "created_at"]
    list_filter = ["lifecycle", "is_edited"]
    search_fields = ["content"]
    raw_id_fields = ["task", "project", "author", "mentions", "deleted_by"]


@admin.register(models.Reply)
class ReplyAdmin(admin.ModelAdmin):
    list_display = ["id", "comment", "author", "lifecycle", "created_at"]
    list_filter = ["lifecycle"]
    raw_id_fields = ["comment", "author", "deleted_by"]
