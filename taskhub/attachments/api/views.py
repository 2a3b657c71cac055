from __future__ import annotations

from drf_spectacular.utils import extend_schema
from drf_spectacular.utils import extend_schema_view
from rest_framework import mixins
from rest_framework import status
from rest_framework.parsers import FormParser
from rest_framework.parsers import MultiPartParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet

from taskhub.access.guards import Action
from taskhub.access.guards import ensure
from taskhub.access.permissions import ResourceGuardPermission
from taskhub.access.roles import is_global_admin
from taskhub.access.roles import readable_project_ids
from taskhub.attachments.models import Attachment
from taskhub.attachments.services import create_attachment
from taskhub.attachments.services import delete_attachment
from taskhub.core.exceptions import NotFoundError
from taskhub.tasks.models import Task

from .serializers import AttachmentSerializer
from .serializers import AttachmentUploadSerializer


@extend_schema_view(
    list=extend_schema(tags=["Attachments"]),
    retrieve=extend_schema(tags=["Attachments"]),
    create=extend_schema(tags=["Attachments"], request=AttachmentUploadSerializer),
    destroy=extend_schema(tags=["Attachments"]),
)
class AttachmentViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.DestroyModelMixin,
    GenericViewSet,
):
    """Files attached to tasks. Filter with ``?task=<id>``."""

    serializer_class = AttachmentSerializer
    permission_classes = [IsAuthenticated, ResourceGuardPermission]
    parser_classes = [MultiPartParser, FormParser]
    filterset_fields = ["task"]

    def get_queryset(self):
        qs = Attachment.objects.select_related("uploaded_by", "task__project")
        user = self.request.user
        if is_global_admin(user):
            return qs
        return qs.filter(task__project_id__in=readable_project_ids(user))

    def create(self, request, *args, **kwargs):
        serializer = AttachmentUploadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        task = Task.objects.select_related("project__team").filter(
            pk=serializer.validated_data["task"],
        ).first()
        if task is None:
            msg = "Task not found."
            raise NotFoundError(msg)
        ensure(request.user, Action.UPLOAD, task)
        attachment = create_attachment(
            task,
            serializer.validated_data["file"],
            actor=request.user,
        )
        out = AttachmentSerializer(attachment, context={"request": request}).data
        return Response(out, status=status.HTTP_201_CREATED)

    def perform_destroy(self, instance):
        delete_attachment(instance, actor=self.request.user)
