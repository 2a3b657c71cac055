from django.shortcuts import get_object_or_404
from drf_spectacular.utils import extend_schema
from drf_spectacular.utils import extend_schema_view
from rest_framework import status
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.filters import SearchFilter
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from taskhub.access.guards import Action
from taskhub.access.guards import ensure
from taskhub.access.permissions import ResourceGuardPermission
from taskhub.access.roles import is_global_admin
from taskhub.access.roles import readable_project_ids
from taskhub.projects import services
from taskhub.projects.models import Project
from taskhub.users.models import User

from .serializers import ProjectMemberAddSerializer
from .serializers import ProjectMembershipSerializer
from .serializers import ProjectMemberRoleSerializer
from .serializers import ProjectSerializer


@extend_schema_view(
    list=extend_schema(tags=["Projects"]),
    retrieve=extend_schema(tags=["Projects"]),
    create=extend_schema(tags=["Projects"]),
    partial_update=extend_schema(tags=["Projects"]),
    update=extend_schema(tags=["Projects"]),
    destroy=extend_schema(tags=["Projects"]),
)
class ProjectViewSet(viewsets.ModelViewSet):
    serializer_class = ProjectSerializer
    permission_classes = [IsAuthenticated, ResourceGuardPermission]
    filter_backends = [SearchFilter]
    search_fields = ["name", "description"]
    guard_actions = {
        "members": {"GET": Action.READ, "POST": Action.MANAGE_MEMBERS},
        "member_detail": Action.MANAGE_MEMBERS,
    }

    def get_queryset(self):
        qs = Project.objects.select_related("team", "owner")
        user = self.request.user
        if not is_global_admin(user):
            qs = qs.filter(pk__in=readable_project_ids(user))
        team_id = self.request.query_params.get("team")
        if team_id and team_id.isdigit():
            qs = qs.filter(team_id=team_id)
        status_value = self.request.query_params.get("status")
        if status_value:
            qs = qs.filter(status=status_value)
        return qs

    def perform_create(self, serializer):
        data = dict(serializer.validated_data)
        team = data.pop("team")
        ensure(self.request.user, Action.CREATE_PROJECT, team)
        serializer.instance = services.create_project(
            team,
            owner=self.request.user,
            **data,
        )

    def perform_update(self, serializer):
        changes = dict(serializer.validated_data)
        changes.pop("team", None)
        serializer.instance = services.update_project(
            serializer.instance,
            changes,
            actor=self.request.user,
        )

    def perform_destroy(self, instance):
        services.delete_project(instance, actor=self.request.user)

    @extend_schema(tags=["Projects"], request=ProjectMemberAddSerializer)
    @action(detail=True, methods=["get", "post"])
    def members(self, request, pk=None):
        project = self.get_object()
        if request.method == "GET":
            memberships = project.memberships.select_related("user")
            return Response(ProjectMembershipSerializer(memberships, many=True).data)
        serializer = ProjectMemberAddSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        membership = services.add_project_member(
            project,
            serializer.validated_data["user"],
            serializer.validated_data["role"],
            actor=request.user,
        )
        return Response(
            ProjectMembershipSerializer(membership).data,
            status=status.HTTP_201_CREATED,
        )

    @extend_schema(tags=["Projects"], request=ProjectMemberRoleSerializer)
    @action(
        detail=True,
        methods=["patch", "delete"],
        url_path=r"members/(?P<user_id>\d+)",
    )
    def member_detail(self, request, pk=None, user_id=None):
        project = self.get_object()
        user = get_object_or_404(User, pk=user_id)
        if request.method == "DELETE":
            services.remove_project_member(project, user, actor=request.user)
            return Response(status=status.HTTP_204_NO_CONTENT)
        serializer = ProjectMemberRoleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        membership = services.change_project_member_role(
            project,
            user,
            serializer.validated_data["role"],
            actor=request.user,
        )
        return Response(ProjectMembershipSerializer(membership).data)
