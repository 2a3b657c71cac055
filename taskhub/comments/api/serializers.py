from rest_framework import serializers

from taskhub.comments.models import Comment
from taskhub.comments.models import Reply
from taskhub.tasks.models import Task
from taskhub.users.api.serializers import UserSummarySerializer


class ReplySerializer(serializers.ModelSerializer[Reply]):
    author = UserSummarySerializer(read_only=True)

    class Meta:
        model = Reply
        fields = ["id", "comment", "author", "content", "is_edited", "created_at"]
        read_only_fields = ["id", "comment", "author", "is_edited", "created_at"]


class CommentSerializer(serializers.ModelSerializer[Comment]):
    task = serializers.PrimaryKeyRelatedField(queryset=Task.objects.all())
    author = UserSummarySerializer(read_only=True)
    mentions = UserSummarySerializer(many=True, read_only=True)
    mention_ids = serializers.ListField(
        child=serializers.IntegerField(),
        write_only=True,
        required=False,
    )
    replies = serializers.SerializerMethodField()

    class Meta:
        model = Comment
        fields = [
            "id",
            "task",
            "project",
            "author",
            "content",
            "mentions",
            "mention_ids",
            "replies",
            "is_edited",
            "edited_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "id",
            "project",
            "author",
            "is_edited",
            "edited_at",
            "created_at",
            "updated_at",
        ]

    def get_replies(self, obj: Comment) -> list[dict]:
        replies = [r for r in obj.replies.all() if not r.is_deleted]
        return ReplySerializer(replies, many=True).data

    def validate_task(self, value):
        if self.instance is not None and value.pk != self.instance.task_id:
            msg = "Comments cannot be moved between tasks."
            raise serializers.ValidationError(msg)
        return value
