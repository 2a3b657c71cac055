from __future__ import annotations

from dataclasses import dataclass

from django.urls import reverse
from rest_framework.test import APITestCase

from taskhub.projects.models import Project
from taskhub.projects.models import ProjectMembership
from taskhub.tasks.models import Task
from taskhub.teams.models import Team
from taskhub.teams.models import TeamMembership
from tests.factories import create_project
from tests.factories import create_task
from tests.factories import create_team
from tests.factories import create_user

ROLE_ADMIN = "admin"  # global admin, no memberships
ROLE_OWNER = "owner"
ROLE_TEAM_ADMIN = "team_admin"
ROLE_MANAGER = "manager"
ROLE_MEMBER = "member"
ROLE_VIEWER = "viewer"
ROLE_OUTSIDER = "outsider"


@dataclass
class World:
    team: Team
    project: Project
    task: Task


class RoleAPITestCase(APITestCase):
    """One team, one project, one task, and a user per role.

    ``member`` is a project member assigned to the task; ``viewer`` is a
    project viewer; ``outsider`` belongs to no team.
    """

    def setUp(self):
        super().setUp()
        self.users = {
            ROLE_ADMIN: create_user("admin", role="admin"),
            ROLE_OWNER: create_user("owner"),
            ROLE_TEAM_ADMIN: create_user("teamadmin"),
            ROLE_MANAGER: create_user("manager"),
            ROLE_MEMBER: create_user("member"),
            ROLE_VIEWER: create_user("viewer"),
            ROLE_OUTSIDER: create_user("outsider"),
        }
        team = create_team(
            self.users[ROLE_OWNER],
            members={
                self.users[ROLE_TEAM_ADMIN]: TeamMembership.Role.ADMIN,
                self.users[ROLE_MANAGER]: TeamMembership.Role.MANAGER,
                self.users[ROLE_MEMBER]: TeamMembership.Role.MEMBER,
                self.users[ROLE_VIEWER]: TeamMembership.Role.MEMBER,
            },
        )
        project = create_project(
            team,
            self.users[ROLE_OWNER],
            members={
                self.users[ROLE_MEMBER]: ProjectMembership.Role.MEMBER,
                self.users[ROLE_VIEWER]: ProjectMembership.Role.VIEWER,
            },
        )
        task = create_task(
            project,
            self.users[ROLE_OWNER],
            assignees=[self.users[ROLE_MEMBER]],
        )
        self.world = World(team=team, project=project, task=task)

    # Utilities -------------------------------------------------------------
    def authenticate(self, role: str):
        self.client.force_authenticate(user=self.users[role])

    def assert_http_status(self, response, expected_status: int):
        msg = getattr(response, "data", response)
        assert response.status_code == expected_status, msg

    def assert_denied(self, response):
        self.assert_http_status(response, 403)
        assert response.data["error"] == "authorization_error"
        assert response.data["message"] == "Access denied"

    def get(self, url_name: str, *, role: str, reverse_kwargs=None, **kwargs):
        self.authenticate(role)
        url = reverse(url_name, kwargs=reverse_kwargs)
        return self.client.get(url, **kwargs)

    def post(
        self, url_name: str, *, role: str, payload=None, reverse_kwargs=None, **kwargs
    ):
        self.authenticate(role)
        url = reverse(url_name, kwargs=reverse_kwargs)
        return self.client.post(url, data=payload or {}, format="json", **kwargs)

    def patch(
        self, url_name: str, *, role: str, payload=None, reverse_kwargs=None, **kwargs
    ):
        self.authenticate(role)
        url = reverse(url_name, kwargs=reverse_kwargs)
        return self.client.patch(url, data=payload or {}, format="json", **kwargs)

    def delete(self, url_name: str, *, role: str, reverse_kwargs=None, **kwargs):
        self.authenticate(role)
        url = reverse(url_name, kwargs=reverse_kwargs)
        return self.client.delete(url, **kwargs)
