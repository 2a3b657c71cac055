from rest_framework import serializers

from taskhub.projects.models import Project
from taskhub.tasks.models import Subtask
from taskhub.tasks.models import Task
from taskhub.tasks.models import TaskStatus
from taskhub.users.api.serializers import UserSummarySerializer


class SubtaskSerializer(serializers.ModelSerializer[Subtask]):
    class Meta:
        model = Subtask
        fields = [
            "id",
            "title",
            "description",
            "status",
            "assigned_to",
            "completed_at",
            "created_at",
        ]
        read_only_fields = ["id", "completed_at", "created_at"]


class TaskSerializer(serializers.ModelSerializer[Task]):
    project = serializers.PrimaryKeyRelatedField(queryset=Project.objects.all())
    creator = UserSummarySerializer(read_only=True)
    assignees = UserSummarySerializer(many=True, read_only=True)
    assignee_ids = serializers.ListField(
        child=serializers.IntegerField(),
        write_only=True,
        required=False,
    )
    subtasks = SubtaskSerializer(many=True, required=False)

    class Meta:
        model = Task
        fields = [
            "id",
            "title",
            "description",
            "project",
            "creator",
            "assignees",
            "assignee_ids",
            "status",
            "priority",
            "start_date",
            "due_date",
            "progress",
            "estimated_hours",
            "comment_count",
            "completed_at",
            "is_archived",
            "subtasks",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "id",
            "creator",
            "comment_count",
            "completed_at",
            "is_archived",
            "created_at",
            "updated_at",
        ]

    def validate_project(self, value):
        if self.instance is not None and value.pk != self.instance.project_id:
            msg = "Tasks cannot be moved between projects."
            raise serializers.ValidationError(msg)
        return value

    def validate_subtasks(self, value):
        if self.instance is not None:
            msg = "Use the subtasks endpoint to change subtasks."
            raise serializers.ValidationError(msg)
        return value

    def validate(self, attrs):
        start = attrs.get("start_date", getattr(self.instance, "start_date", None))
        due = attrs.get("due_date", getattr(self.instance, "due_date", None))
        if start and due and due < start:
            raise serializers.ValidationError(
                {"due_date": "Due date cannot be before start date."},
            )
        return attrs


class ArchiveSerializer(serializers.Serializer):
    archived = serializers.BooleanField(default=True)


class TaskStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=TaskStatus.choices)
