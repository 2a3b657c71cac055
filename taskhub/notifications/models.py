from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from taskhub.projects.models import Priority


class Notification(models.Model):
    class Type(models.TextChoices):
        TASK_ASSIGNED = "task_assigned", _("Task assigned")
        TASK_UPDATED = "task_updated", _("Task updated")
        TASK_COMPLETED = "task_completed", _("Task completed")
        TASK_OVERDUE = "task_overdue", _("Task overdue")
        DEADLINE_APPROACHING = "deadline_approaching", _("Deadline approaching")
        SUBTASK_COMPLETED = "subtask_completed", _("Subtask completed")
        COMMENT_ADDED = "comment_added", _("Comment added")
        COMMENT_MENTION = "comment_mention", _("Mentioned in a comment")
        FILE_UPLOADED = "file_uploaded", _("File uploaded")
        TEAM_INVITATION = "team_invitation", _("Team invitation")
        TEAM_REMOVED = "team_removed", _("Removed from team")
        PROJECT_CREATED = "project_created", _("Project created")
        PROJECT_UPDATED = "project_updated", _("Project updated")
        PROJECT_ARCHIVED = "project_archived", _("Project archived")
        ROLE_CHANGED = "role_changed", _("Role changed")
        SYSTEM_ANNOUNCEMENT = "system_announcement", _("System announcement")

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
    )
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="sent_notifications",
    )
    notification_type = models.CharField(max_length=50, choices=Type.choices)
    title = models.CharField(max_length=200)
    message = models.TextField(max_length=1000)
    priority = models.CharField(
        max_length=20,
        choices=Priority.choices,
        default=Priority.MEDIUM,
    )
    is_read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)
    task = models.ForeignKey(
        "tasks.Task",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    project = models.ForeignKey(
        "projects.Project",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    comment = models.ForeignKey(
        "comments.Comment",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    action_url = models.CharField(max_length=500, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(
                fields=["recipient", "is_read", "-created_at"],
                name="notif_recipient_unread_idx",
            ),
        ]

    def __str__(self):
        return f"{self.title} - {self.recipient}"
