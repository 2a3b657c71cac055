from rest_framework import serializers

from taskhub.access.roles import effective_project_role
from taskhub.projects.models import Project
from taskhub.projects.models import ProjectMembership
from taskhub.teams.models import Team
from taskhub.users.api.serializers import UserSummarySerializer
from taskhub.users.models import User


class ProjectSerializer(serializers.ModelSerializer[Project]):
    team = serializers.PrimaryKeyRelatedField(queryset=Team.objects.all())
    owner = UserSummarySerializer(read_only=True)
    my_role = serializers.SerializerMethodField()

    class Meta:
        model = Project
        fields = [
            "id",
            "name",
            "description",
            "team",
            "owner",
            "status",
            "priority",
            "start_date",
            "end_date",
            "my_role",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "owner", "created_at", "updated_at"]

    def get_my_role(self, obj: Project) -> str:
        request = self.context.get("request")
        return effective_project_role(getattr(request, "user", None), obj).name.lower()

    def validate_team(self, value):
        # Projects never move between teams
        if self.instance is not None and value.pk != self.instance.team_id:
            msg = "The team of an existing project cannot be changed."
            raise serializers.ValidationError(msg)
        return value

    def validate(self, attrs):
        start = attrs.get("start_date", getattr(self.instance, "start_date", None))
        end = attrs.get("end_date", getattr(self.instance, "end_date", None))
        if start and end and end < start:
            raise serializers.ValidationError(
                {"end_date": "End date cannot be before start date."},
            )
        return attrs


class ProjectMembershipSerializer(serializers.ModelSerializer[ProjectMembership]):
    user = UserSummarySerializer(read_only=True)

    class Meta:
        model = ProjectMembership
        fields = ["id", "user", "role", "added_at"]
        read_only_fields = fields


class ProjectMemberAddSerializer(serializers.Serializer):
    user = serializers.PrimaryKeyRelatedField(
        queryset=User.objects.filter(is_active=True),
    )
    role = serializers.ChoiceField(
        choices=ProjectMembership.Role.choices,
        default=ProjectMembership.Role.MEMBER,
    )


class ProjectMemberRoleSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=ProjectMembership.Role.choices)
