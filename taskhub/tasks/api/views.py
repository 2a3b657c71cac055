import logging

from django.shortcuts import get_object_or_404
from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import extend_schema
from drf_spectacular.utils import extend_schema_view
from rest_framework import status
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter
from rest_framework.filters import SearchFilter
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from taskhub.access.guards import Action
from taskhub.access.guards import ensure
from taskhub.access.permissions import ResourceGuardPermission
from taskhub.access.roles import is_global_admin
from taskhub.access.roles import readable_project_ids
from taskhub.tasks import services
from taskhub.tasks.models import Subtask
from taskhub.tasks.models import Task

from .filters import TaskFilter
from .serializers import ArchiveSerializer
from .serializers import SubtaskSerializer
from .serializers import TaskSerializer

logger = logging.getLogger(__name__)


@extend_schema_view(
    list=extend_schema(tags=["Tasks"]),
    retrieve=extend_schema(tags=["Tasks"]),
    create=extend_schema(tags=["Tasks"]),
    partial_update=extend_schema(tags=["Tasks"]),
    update=extend_schema(tags=["Tasks"]),
    destroy=extend_schema(tags=["Tasks"]),
)
class TaskViewSet(viewsets.ModelViewSet):
    """Tasks of the projects the caller can read.

    Assignees holding a plain member role may only PATCH ``status`` and
    ``progress``; any other key in the body denies the whole request.
    """

    serializer_class = TaskSerializer
    permission_classes = [IsAuthenticated, ResourceGuardPermission]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    filterset_class = TaskFilter
    search_fields = ["title", "description"]
    ordering_fields = ["created_at", "due_date", "priority", "status"]
    guard_actions = {
        "archive": Action.UPDATE,
        "subtasks": {"GET": Action.READ, "POST": Action.UPDATE},
        "subtask_detail": Action.UPDATE,
    }

    def get_queryset(self):
        qs = (
            Task.objects.select_related("project__team", "creator")
            .prefetch_related("assignees", "subtasks")
            .distinct()
        )
        user = self.request.user
        if is_global_admin(user):
            return qs
        return qs.filter(project_id__in=readable_project_ids(user))

    def perform_create(self, serializer):
        data = dict(serializer.validated_data)
        project = data.pop("project")
        ensure(self.request.user, Action.CREATE_TASK, project)
        serializer.instance = services.create_task(
            project,
            creator=self.request.user,
            assignee_ids=data.pop("assignee_ids", []),
            subtasks=data.pop("subtasks", []),
            **data,
        )

    def perform_update(self, serializer):
        changes = dict(serializer.validated_data)
        changes.pop("project", None)
        serializer.instance = services.update_task(
            serializer.instance,
            changes,
            actor=self.request.user,
        )

    def perform_destroy(self, instance):
        services.delete_task(instance, actor=self.request.user)

    @extend_schema(tags=["Tasks"], request=ArchiveSerializer)
    @action(detail=True, methods=["post"])
    def archive(self, request, pk=None):
        task = self.get_object()
        serializer = ArchiveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        task = services.set_archived(
            task,
            archived=serializer.validated_data["archived"],
            actor=request.user,
        )
        return Response(TaskSerializer(task, context={"request": request}).data)

    @extend_schema(tags=["Tasks"], request=SubtaskSerializer)
    @action(detail=True, methods=["get", "post"])
    def subtasks(self, request, pk=None):
        task = self.get_object()
        if request.method == "GET":
            return Response(SubtaskSerializer(task.subtasks.all(), many=True).data)
        serializer = SubtaskSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        subtask = services.add_subtask(
            task,
            actor=request.user,
            **serializer.validated_data,
        )
        return Response(
            SubtaskSerializer(subtask).data,
            status=status.HTTP_201_CREATED,
        )

    @extend_schema(tags=["Tasks"], request=SubtaskSerializer)
    @action(
        detail=True,
        methods=["patch", "delete"],
        url_path=r"subtasks/(?P<subtask_id>\d+)",
    )
    def subtask_detail(self, request, pk=None, subtask_id=None):
        task = self.get_object()
        subtask = get_object_or_404(Subtask, pk=subtask_id, task=task)
        if request.method == "DELETE":
            services.delete_subtask(subtask, actor=request.user)
            return Response(status=status.HTTP_204_NO_CONTENT)
        serializer = SubtaskSerializer(subtask, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        subtask = services.update_subtask(
            subtask,
            dict(serializer.validated_data),
            actor=request.user,
        )
        return Response(SubtaskSerializer(subtask).data)
