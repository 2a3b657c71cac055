from __future__ import annotations

from rest_framework import serializers

from taskhub.notifications.models import Notification
from taskhub.projects.models import Priority
from taskhub.users.api.serializers import UserSummarySerializer


class NotificationSerializer(serializers.ModelSerializer):
    """Read serializer for notifications."""

    sender = UserSummarySerializer(read_only=True)

    class Meta:
        model = Notification
        fields = (
            "id",
            "notification_type",
            "title",
            "message",
            "priority",
            "sender",
            "task",
            "project",
            "comment",
            "action_url",
            "is_read",
            "read_at",
            "created_at",
        )
        read_only_fields = fields


class AnnouncementSerializer(serializers.Serializer):
    """System announcement to every active user, or to ``recipients`` only."""

    title = serializers.CharField(max_length=200)
    message = serializers.CharField(max_length=1000)
    priority = serializers.ChoiceField(
        choices=Priority.choices,
        default=Priority.MEDIUM,
    )
    recipients = serializers.ListField(
        child=serializers.IntegerField(min_value=1),
        required=False,
        allow_empty=False,
    )
