from rest_framework import serializers

from taskhub.access.roles import effective_team_role
from taskhub.teams.models import Invitation
from taskhub.teams.models import Team
from taskhub.teams.models import TeamMembership
from taskhub.users.api.serializers import UserSummarySerializer
from taskhub.users.models import User


class TeamSerializer(serializers.ModelSerializer[Team]):
    owner = UserSummarySerializer(read_only=True)
    member_count = serializers.SerializerMethodField()
    my_role = serializers.SerializerMethodField()

    class Meta:
        model = Team
        fields = [
            "id",
            "name",
            "description",
            "owner",
            "is_active",
            "member_count",
            "my_role",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "owner", "created_at", "updated_at"]

    def get_member_count(self, obj: Team) -> int:
        return obj.memberships.count()

    def get_my_role(self, obj: Team) -> str:
        request = self.context.get("request")
        return effective_team_role(getattr(request, "user", None), obj).name.lower()


class TeamMembershipSerializer(serializers.ModelSerializer[TeamMembership]):
    user = UserSummarySerializer(read_only=True)

    class Meta:
        model = TeamMembership
        fields = ["id", "user", "role", "joined_at"]
        read_only_fields = fields


class MemberAddSerializer(serializers.Serializer):
    user = serializers.PrimaryKeyRelatedField(
        queryset=User.objects.filter(is_active=True),
    )
    role = serializers.ChoiceField(
        choices=TeamMembership.Role.choices,
        default=TeamMembership.Role.MEMBER,
    )


class MemberRoleSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=TeamMembership.Role.choices)


class InviteSerializer(serializers.Serializer):
    email = serializers.EmailField()
    role = serializers.ChoiceField(
        choices=TeamMembership.Role.choices,
        default=TeamMembership.Role.MEMBER,
    )


class InvitationSerializer(serializers.ModelSerializer[Invitation]):
    team_name = serializers.CharField(source="team.name", read_only=True)
    invited_by = UserSummarySerializer(read_only=True)

    class Meta:
        model = Invitation
        fields = [
            "id",
            "team",
            "team_name",
            "email",
            "role",
            "token",
            "status",
            "invited_by",
            "expires_at",
            "responded_at",
            "created_at",
        ]
        read_only_fields = fields
