from __future__ import annotations

import logging

from django.contrib.auth import get_user_model
from drf_spectacular.utils import extend_schema
from drf_spectacular.utils import extend_schema_view
from rest_framework import mixins
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet

from taskhub.access.permissions import IsGlobalAdmin
from taskhub.core.exceptions import ValidationError
from taskhub.notifications import services
from taskhub.notifications.digest import digest_job
from taskhub.notifications.models import Notification
from taskhub.notifications.tasks import send_daily_digest_task

from .serializers import AnnouncementSerializer
from .serializers import NotificationSerializer

logger = logging.getLogger(__name__)

User = get_user_model()


@extend_schema_view(
    list=extend_schema(tags=["Notifications"]),
    retrieve=extend_schema(tags=["Notifications"]),
    destroy=extend_schema(tags=["Notifications"]),
)
class NotificationViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.DestroyModelMixin,
    GenericViewSet,
):
    """Notifications for the authenticated user.

    - list: ``?is_read=`` and ``?notification_type=`` filter the feed
    - mark-read / mark-unread / mark-all-read / unread-count
    - announce, digest: global admins only
    """

    permission_classes = [IsAuthenticated]
    serializer_class = NotificationSerializer
    filterset_fields = ["is_read", "notification_type"]

    def get_queryset(self):
        return Notification.objects.filter(recipient=self.request.user).select_related(
            "sender",
        )

    def get_permissions(self):
        if self.action in {"announce", "digest"}:
            return [IsAuthenticated(), IsGlobalAdmin()]
        return [p() for p in self.permission_classes]

    @extend_schema(tags=["Notifications"], request=None)
    @action(detail=True, methods=["post"], url_path="mark-read")
    def mark_read(self, request, pk=None):
        notification = services.mark_read(self.get_object())
        return Response(NotificationSerializer(notification).data)

    @extend_schema(tags=["Notifications"], request=None)
    @action(detail=True, methods=["post"], url_path="mark-unread")
    def mark_unread(self, request, pk=None):
        notification = services.mark_unread(self.get_object())
        return Response(NotificationSerializer(notification).data)

    @extend_schema(tags=["Notifications"], request=None)
    @action(detail=False, methods=["post"], url_path="mark-all-read")
    def mark_all_read(self, request):
        updated = services.mark_all_read(request.user)
        return Response({"updated": updated})

    @extend_schema(tags=["Notifications"])
    @action(detail=False, methods=["get"], url_path="unread-count")
    def unread_count(self, request):
        return Response({"count": services.unread_count(request.user)})

    @extend_schema(tags=["Notifications"], request=AnnouncementSerializer)
    @action(detail=False, methods=["post"])
    def announce(self, request):
        serializer = AnnouncementSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        recipients = User.objects.filter(is_active=True)
        if "recipients" in data:
            recipients = recipients.filter(pk__in=data["recipients"])
        created = services.notify_many(
            recipients,
            Notification.Type.SYSTEM_ANNOUNCEMENT,
            data["title"],
            data["message"],
            sender=request.user,
            priority=data["priority"],
        )
        if not created:
            msg = "No recipients resolved from payload."
            raise ValidationError(msg)
        return Response({"created": len(created)}, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Notifications"], request=None)
    @action(detail=False, methods=["get", "post"])
    def digest(self, request):
        if request.method == "GET":
            return Response(digest_job.status())
        if digest_job.running:
            return Response(
                {"queued": False, **digest_job.status()},
                status=status.HTTP_202_ACCEPTED,
            )
        result = send_daily_digest_task.delay()
        logger.info("Digest queued by user %s task=%s", request.user.pk, result.id)
        return Response(
            {"queued": True, "taskId": result.id, **digest_job.status()},
            status=status.HTTP_202_ACCEPTED,
        )
