from __future__ import annotations

from rest_framework import serializers

from taskhub.activity.models import Activity
from taskhub.users.api.serializers import UserSummarySerializer


class ActivitySerializer(serializers.ModelSerializer):
    actor = UserSummarySerializer(allow_null=True, read_only=True)

    class Meta:
        model = Activity
        fields = [
            "id",
            "action",
            "message",
            "team",
            "project",
            "task",
            "metadata",
            "created_at",
            "actor",
        ]
