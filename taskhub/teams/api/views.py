import logging

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
from taskhub.access.permissions import ResourceGuardPermission
from taskhub.access.roles import is_global_admin
from taskhub.access.roles import readable_team_ids
from taskhub.core.exceptions import ValidationError
from taskhub.core.exceptions import error_response
from taskhub.teams import services
from taskhub.teams.models import Invitation
from taskhub.teams.models import Team
from taskhub.users.models import User

from .serializers import InvitationSerializer
from .serializers import InviteSerializer
from .serializers import MemberAddSerializer
from .serializers import MemberRoleSerializer
from .serializers import TeamMembershipSerializer
from .serializers import TeamSerializer

logger = logging.getLogger(__name__)


@extend_schema_view(
    list=extend_schema(tags=["Teams"]),
    retrieve=extend_schema(tags=["Teams"]),
    create=extend_schema(tags=["Teams"]),
    partial_update=extend_schema(tags=["Teams"]),
    update=extend_schema(tags=["Teams"]),
    destroy=extend_schema(tags=["Teams"]),
)
class TeamViewSet(viewsets.ModelViewSet):
    serializer_class = TeamSerializer
    permission_classes = [IsAuthenticated, ResourceGuardPermission]
    filter_backends = [SearchFilter]
    search_fields = ["name", "description"]
    guard_actions = {
        "members": {"GET": Action.READ, "POST": Action.MANAGE_MEMBERS},
        "member_detail": Action.MANAGE_MEMBERS,
        "invite": Action.INVITE,
        "invitations": Action.INVITE,
    }

    def get_queryset(self):
        qs = Team.objects.select_related("owner")
        user = self.request.user
        if is_global_admin(user):
            return qs
        return qs.filter(pk__in=readable_team_ids(user))

    def perform_create(self, serializer):
        serializer.instance = services.create_team(
            self.request.user,
            name=serializer.validated_data["name"],
            description=serializer.validated_data.get("description", ""),
        )

    def perform_destroy(self, instance):
        services.delete_team(instance, actor=self.request.user)

    @extend_schema(tags=["Teams"], request=MemberAddSerializer)
    @action(detail=True, methods=["get", "post"])
    def members(self, request, pk=None):
        team = self.get_object()
        if request.method == "GET":
            memberships = team.memberships.select_related("user")
            return Response(TeamMembershipSerializer(memberships, many=True).data)
        serializer = MemberAddSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        membership = services.add_team_member(
            team,
            serializer.validated_data["user"],
            serializer.validated_data["role"],
            actor=request.user,
        )
        return Response(
            TeamMembershipSerializer(membership).data,
            status=status.HTTP_201_CREATED,
        )

    @extend_schema(tags=["Teams"], request=MemberRoleSerializer)
    @action(
        detail=True,
        methods=["patch", "delete"],
        url_path=r"members/(?P<user_id>\d+)",
    )
    def member_detail(self, request, pk=None, user_id=None):
        team = self.get_object()
        user = get_object_or_404(User, pk=user_id)
        if request.method == "DELETE":
            removed = services.remove_team_member(team, user, actor=request.user)
            return Response({"removed": True, **removed})
        serializer = MemberRoleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        membership = services.change_team_member_role(
            team,
            user,
            serializer.validated_data["role"],
            actor=request.user,
        )
        return Response(TeamMembershipSerializer(membership).data)

    @extend_schema(tags=["Teams"], request=InviteSerializer)
    @action(detail=True, methods=["post"])
    def invite(self, request, pk=None):
        team = self.get_object()
        serializer = InviteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        invitation = services.invite(
            team,
            serializer.validated_data["email"],
            serializer.validated_data["role"],
            invited_by=request.user,
        )
        return Response(
            InvitationSerializer(invitation).data,
            status=status.HTTP_201_CREATED,
        )

    @extend_schema(tags=["Teams"])
    @action(detail=True, methods=["get"])
    def invitations(self, request, pk=None):
        team = self.get_object()
        pending = team.invitations.filter(status=Invitation.Status.PENDING)
        return Response(InvitationSerializer(pending, many=True).data)


@extend_schema_view(list=extend_schema(tags=["Teams"]))
class InvitationViewSet(viewsets.GenericViewSet):
    """Invitations addressed to the signed-in user, looked up by token."""

    serializer_class = InvitationSerializer
    permission_classes = [IsAuthenticated]
    lookup_field = "token"

    def get_queryset(self):
        return services.pending_invitations_for(self.request.user)

    def list(self, request):
        return Response(self.get_serializer(self.get_queryset(), many=True).data)

    @extend_schema(tags=["Teams"], request=None)
    @action(detail=True, methods=["post"])
    def accept(self, request, token=None):
        invitation = services.accept_invitation(token, request.user)
        if invitation.status == Invitation.Status.EXPIRED:
            logger.info("Invitation %s expired before acceptance", invitation.pk)
            return error_response(ValidationError("Invitation has expired."))
        return Response(InvitationSerializer(invitation).data)

    @extend_schema(tags=["Teams"], request=None)
    @action(detail=True, methods=["post"])
    def decline(self, request, token=None):
        invitation = services.decline_invitation(token, request.user)
        return Response(InvitationSerializer(invitation).data)
