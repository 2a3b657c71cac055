from django.db.models import Prefetch
from django.shortcuts import get_object_or_404
from drf_spectacular.utils import OpenApiParameter
from drf_spectacular.utils import extend_schema
from drf_spectacular.utils import extend_schema_view
from rest_framework import mixins
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet

from taskhub.access.guards import Action
from taskhub.access.guards import ensure
from taskhub.access.permissions import ResourceGuardPermission
from taskhub.access.roles import is_global_admin
from taskhub.access.roles import readable_project_ids
from taskhub.comments import services
from taskhub.comments.models import Comment
from taskhub.comments.models import Reply

from .serializers import CommentSerializer
from .serializers import ReplySerializer


@extend_schema_view(
    list=extend_schema(
        tags=["Comments"],
        parameters=[OpenApiParameter("task", int, description="Task id")],
    ),
    retrieve=extend_schema(tags=["Comments"]),
    create=extend_schema(tags=["Comments"]),
    partial_update=extend_schema(tags=["Comments"]),
    destroy=extend_schema(tags=["Comments"]),
)
class CommentViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    mixins.UpdateModelMixin,
    mixins.DestroyModelMixin,
    GenericViewSet,
):
    """Task discussion. Only the author edits; deletes are soft."""

    serializer_class = CommentSerializer
    permission_classes = [IsAuthenticated, ResourceGuardPermission]
    http_method_names = ["get", "post", "patch", "delete", "head", "options"]
    guard_actions = {
        "replies": {"GET": Action.READ, "POST": Action.REPLY},
        "reply_detail": Action.READ,
    }

    def get_queryset(self):
        qs = (
            Comment.objects.active()
            .select_related("author", "task", "project__team")
            .prefetch_related(
                "mentions",
                Prefetch(
                    "replies",
                    queryset=Reply.objects.active().select_related("author"),
                ),
            )
        )
        user = self.request.user
        if not is_global_admin(user):
            qs = qs.filter(project_id__in=readable_project_ids(user))
        task_id = self.request.query_params.get("task")
        if task_id and task_id.isdigit():
            qs = qs.filter(task_id=task_id)
        return qs

    def perform_create(self, serializer):
        task = serializer.validated_data["task"]
        ensure(self.request.user, Action.COMMENT, task)
        serializer.instance = services.create_comment(
            task,
            author=self.request.user,
            content=serializer.validated_data.get("content", ""),
            mention_ids=serializer.validated_data.get("mention_ids", []),
        )

    def perform_update(self, serializer):
        comment = serializer.instance
        serializer.instance = services.update_comment(
            comment,
            actor=self.request.user,
            content=serializer.validated_data.get("content", comment.content),
            mention_ids=serializer.validated_data.get("mention_ids"),
        )

    def perform_destroy(self, instance):
        services.delete_comment(instance, actor=self.request.user)

    @extend_schema(tags=["Comments"], request=ReplySerializer)
    @action(detail=True, methods=["get", "post"])
    def replies(self, request, pk=None):
        comment = self.get_object()
        if request.method == "GET":
            replies = Reply.objects.active().filter(comment=comment)
            return Response(ReplySerializer(replies, many=True).data)
        serializer = ReplySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        reply = services.add_reply(
            comment,
            author=request.user,
            content=serializer.validated_data["content"],
        )
        return Response(ReplySerializer(reply).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Comments"])
    @action(
        detail=True,
        methods=["delete"],
        url_path=r"replies/(?P<reply_id>\d+)",
    )
    def reply_detail(self, request, pk=None, reply_id=None):
        comment = self.get_object()
        reply = get_object_or_404(Reply.objects.active(), pk=reply_id, comment=comment)
        ensure(request.user, Action.DELETE, reply)
        services.delete_reply(reply, actor=request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)
