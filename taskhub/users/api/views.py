import logging

from django.db import transaction
from drf_spectacular.utils import extend_schema
from drf_spectacular.utils import extend_schema_view
from rest_framework import filters
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.mixins import ListModelMixin
from rest_framework.mixins import RetrieveModelMixin
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken
from rest_framework_simplejwt.token_blacklist.models import OutstandingToken

from taskhub.access.permissions import IsGlobalAdmin
from taskhub.activity.utils import log_activity
from taskhub.core.exceptions import ValidationError
from taskhub.realtime import hub
from taskhub.users.models import User

from .serializers import RoleChangeSerializer
from .serializers import UserSerializer

logger = logging.getLogger(__name__)


@extend_schema_view(
    list=extend_schema(tags=["Users"]),
    retrieve=extend_schema(tags=["Users"]),
)
class UserViewSet(RetrieveModelMixin, ListModelMixin, GenericViewSet):
    serializer_class = UserSerializer
    queryset = User.objects.filter(is_active=True).order_by("username")
    permission_classes = [IsAuthenticated]
    filter_backends = [filters.SearchFilter]
    search_fields = ["username", "email", "name"]

    def get_permissions(self):
        if self.action in {"change_role", "deactivate"}:
            return [IsAuthenticated(), IsGlobalAdmin()]
        return super().get_permissions()

    def get_queryset(self):
        if self.action in {"change_role", "deactivate"}:
            return User.objects.all()
        return super().get_queryset()

    @action(detail=False, methods=["get", "patch"])
    def me(self, request):
        if request.method == "GET":
            serializer = UserSerializer(request.user, context={"request": request})
            return Response(status=status.HTTP_200_OK, data=serializer.data)
        serializer = UserSerializer(
            request.user,
            data=request.data,
            partial=True,
            context={"request": request},
        )
        serializer.is_valid(raise_exception=True)
        instance = serializer.save()
        log_activity(
            "user_updated",
            actor=request.user,
            message=f"username={instance.username}",
        )
        return Response(serializer.data)

    @action(detail=True, methods=["post"], url_path="role")
    def change_role(self, request, pk=None):
        user = self.get_object()
        serializer = RoleChangeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        new_role = serializer.validated_data["role"]
        if user.pk == request.user.pk and new_role != User.Role.ADMIN:
            msg = "Admins cannot demote themselves."
            raise ValidationError(msg)
        old_role = user.role
        user.role = new_role
        user.save(update_fields=["role", "updated_at"])
        log_activity(
            "user_role_changed",
            actor=request.user,
            message=f"username={user.username}",
            metadata={"from": old_role, "to": new_role},
        )
        return Response(UserSerializer(user, context={"request": request}).data)

    @action(detail=True, methods=["post"])
    def deactivate(self, request, pk=None):
        user = self.get_object()
        if user.pk == request.user.pk:
            msg = "You cannot deactivate your own account."
            raise ValidationError(msg)
        with transaction.atomic():
            user.is_active = False
            user.save(update_fields=["is_active", "updated_at"])
            for token in OutstandingToken.objects.filter(user=user):
                BlacklistedToken.objects.get_or_create(token=token)
        log_activity(
            "user_deactivated",
            actor=request.user,
            message=f"username={user.username}",
        )
        transaction.on_commit(lambda: hub.disconnect_user(user.pk))
        logger.info("User %s deactivated by %s", user.pk, request.user.pk)
        return Response(UserSerializer(user, context={"request": request}).data)
