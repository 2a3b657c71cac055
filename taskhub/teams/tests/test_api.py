from datetime import timedelta

from django.utils import timezone
from rest_framework import status

from taskhub.teams import services
from taskhub.teams.models import Invitation
from taskhub.teams.models import Team
from taskhub.teams.models import TeamMembership
from tests.factories import create_user
from tests.mixins import ROLE_ADMIN
from tests.mixins import ROLE_MANAGER
from tests.mixins import ROLE_MEMBER
from tests.mixins import ROLE_OUTSIDER
from tests.mixins import ROLE_OWNER
from tests.mixins import ROLE_TEAM_ADMIN
from tests.mixins import RoleAPITestCase


class TeamAPITests(RoleAPITestCase):
    def team_kwargs(self):
        return {"pk": self.world.team.pk}

    def member_kwargs(self, role):
        return {"pk": self.world.team.pk, "user_id": self.users[role].pk}

    def test_list_is_scoped_to_memberships(self):
        Team.objects.create(name="Elsewhere", owner=self.users[ROLE_OUTSIDER])

        response = self.get("api_v1:teams-list", role=ROLE_MEMBER)
        self.assert_http_status(response, status.HTTP_200_OK)
        names = [row["name"] for row in response.data["results"]]
        assert names == [self.world.team.name]

    def test_create_makes_requester_owner(self):
        response = self.post(
            "api_v1:teams-list",
            role=ROLE_OUTSIDER,
            payload={"name": "Growth"},
        )
        self.assert_http_status(response, status.HTTP_201_CREATED)
        assert response.data["my_role"] == "owner"
        team = Team.objects.get(pk=response.data["id"])
        assert team.owner == self.users[ROLE_OUTSIDER]

    def test_outsider_cannot_read_team(self):
        response = self.get(
            "api_v1:teams-detail",
            role=ROLE_OUTSIDER,
            reverse_kwargs=self.team_kwargs(),
        )
        self.assert_http_status(response, status.HTTP_404_NOT_FOUND)

    def test_members_listing_and_adding(self):
        listed = self.get(
            "api_v1:teams-members",
            role=ROLE_MEMBER,
            reverse_kwargs=self.team_kwargs(),
        )
        self.assert_http_status(listed, status.HTTP_200_OK)
        assert len(listed.data) == 5

        newcomer = create_user("newcomer")
        denied = self.post(
            "api_v1:teams-members",
            role=ROLE_MANAGER,
            payload={"user": newcomer.pk},
            reverse_kwargs=self.team_kwargs(),
        )
        self.assert_denied(denied)

        added = self.post(
            "api_v1:teams-members",
            role=ROLE_TEAM_ADMIN,
            payload={"user": newcomer.pk, "role": "manager"},
            reverse_kwargs=self.team_kwargs(),
        )
        self.assert_http_status(added, status.HTTP_201_CREATED)
        assert added.data["role"] == "manager"

    def test_member_role_change_and_removal(self):
        changed = self.patch(
            "api_v1:teams-member-detail",
            role=ROLE_TEAM_ADMIN,
            payload={"role": "manager"},
            reverse_kwargs=self.member_kwargs(ROLE_MEMBER),
        )
        self.assert_http_status(changed, status.HTTP_200_OK)
        assert changed.data["role"] == "manager"

        removed = self.delete(
            "api_v1:teams-member-detail",
            role=ROLE_TEAM_ADMIN,
            reverse_kwargs=self.member_kwargs(ROLE_MEMBER),
        )
        self.assert_http_status(removed, status.HTTP_200_OK)
        assert removed.data == {
            "removed": True,
            "project_memberships": 1,
            "task_assignments": 1,
            "subtask_assignments": 0,
        }
        assert not self.world.task.assignees.exists()

    def test_removing_owner_is_rejected(self):
        response = self.delete(
            "api_v1:teams-member-detail",
            role=ROLE_ADMIN,
            reverse_kwargs=self.member_kwargs(ROLE_OWNER),
        )
        self.assert_http_status(response, status.HTTP_400_BAD_REQUEST)
        assert response.data["error"] == "validation_error"

    def test_delete_team_with_projects_conflicts(self):
        response = self.delete(
            "api_v1:teams-detail",
            role=ROLE_OWNER,
            reverse_kwargs=self.team_kwargs(),
        )
        self.assert_http_status(response, status.HTTP_409_CONFLICT)
        assert response.data["message"] == "Cannot delete team with 1 project(s)"
        assert Team.objects.filter(pk=self.world.team.pk).exists()

    def test_only_owner_deletes_team(self):
        self.world.project.delete()

        denied = self.delete(
            "api_v1:teams-detail",
            role=ROLE_TEAM_ADMIN,
            reverse_kwargs=self.team_kwargs(),
        )
        self.assert_denied(denied)

        deleted = self.delete(
            "api_v1:teams-detail",
            role=ROLE_OWNER,
            reverse_kwargs=self.team_kwargs(),
        )
        self.assert_http_status(deleted, status.HTTP_204_NO_CONTENT)
        assert not Team.objects.filter(pk=self.world.team.pk).exists()


class InvitationAPITests(RoleAPITestCase):
    def setUp(self):
        super().setUp()
        self.invitee = create_user("invitee")

    def invite(self, role=ROLE_MANAGER):
        return self.post(
            "api_v1:teams-invite",
            role=role,
            payload={"email": self.invitee.email, "role": "member"},
            reverse_kwargs={"pk": self.world.team.pk},
        )

    def test_member_cannot_invite(self):
        self.assert_denied(self.invite(role=ROLE_MEMBER))

    def test_invite_then_accept(self):
        response = self.invite()
        self.assert_http_status(response, status.HTTP_201_CREATED)
        token = response.data["token"]

        self.client.force_authenticate(user=self.invitee)
        pending = self.client.get("/api/v1/teams/invitations/")
        self.assert_http_status(pending, status.HTTP_200_OK)
        assert [row["token"] for row in pending.data] == [token]

        accepted = self.client.post(f"/api/v1/teams/invitations/{token}/accept/")
        self.assert_http_status(accepted, status.HTTP_200_OK)
        assert accepted.data["status"] == "accepted"
        assert TeamMembership.objects.filter(
            team=self.world.team,
            user=self.invitee,
        ).exists()

    def test_accepting_for_another_email_is_denied(self):
        token = self.invite().data["token"]
        self.authenticate(ROLE_OUTSIDER)
        response = self.client.post(f"/api/v1/teams/invitations/{token}/accept/")
        self.assert_denied(response)

    def test_expired_invitation_is_marked_and_rejected(self):
        invitation = services.invite(
            self.world.team,
            self.invitee.email,
            "member",
            invited_by=self.users[ROLE_OWNER],
        )
        Invitation.objects.filter(pk=invitation.pk).update(
            expires_at=timezone.now() - timedelta(hours=1),
        )

        self.client.force_authenticate(user=self.invitee)
        response = self.client.post(
            f"/api/v1/teams/invitations/{invitation.token}/accept/",
        )

        self.assert_http_status(response, status.HTTP_400_BAD_REQUEST)
        assert response.data["message"] == "Invitation has expired."
        invitation.refresh_from_db()
        assert invitation.status == Invitation.Status.EXPIRED

    def test_decline(self):
        token = self.invite().data["token"]
        self.client.force_authenticate(user=self.invitee)
        response = self.client.post(f"/api/v1/teams/invitations/{token}/decline/")
        self.assert_http_status(response, status.HTTP_200_OK)
        assert response.data["status"] == "declined"
        assert not TeamMembership.objects.filter(
            team=self.world.team,
            user=self.invitee,
        ).exists()
