import pytest

from taskhub.access.roles import Role
from taskhub.access.roles import effective_project_role
from taskhub.access.roles import effective_team_role
from taskhub.access.roles import is_global_admin
from taskhub.access.roles import readable_project_ids
from taskhub.projects.models import Project
from taskhub.projects.models import ProjectMembership
from taskhub.teams.models import TeamMembership
from tests.factories import create_project
from tests.factories import create_team
from tests.factories import create_user

pytestmark = pytest.mark.django_db


@pytest.fixture
def setup():
    owner = create_user("owner")
    manager = create_user("manager")
    member = create_user("member")
    outsider = create_user("outsider")
    team = create_team(
        owner,
        members={
            manager: TeamMembership.Role.MANAGER,
            member: TeamMembership.Role.MEMBER,
        },
    )
    project = create_project(
        team,
        owner,
        members={member: ProjectMembership.Role.VIEWER},
    )
    return {
        "owner": owner,
        "manager": manager,
        "member": member,
        "outsider": outsider,
        "team": team,
        "project": project,
    }


def test_role_order_is_total():
    assert Role.NONE < Role.VIEWER < Role.MEMBER < Role.MANAGER
    assert Role.MANAGER < Role.ADMIN < Role.OWNER


def test_owner_resolves_above_admin(setup):
    role = effective_team_role(setup["owner"], setup["team"])
    assert role == Role.OWNER
    assert role >= Role.ADMIN


def test_team_roles_follow_membership(setup):
    assert effective_team_role(setup["manager"], setup["team"]) == Role.MANAGER
    assert effective_team_role(setup["member"], setup["team"]) == Role.MEMBER
    assert effective_team_role(setup["outsider"], setup["team"]) == Role.NONE


def test_team_managers_are_implicit_project_managers(setup):
    project = setup["project"]
    assert effective_project_role(setup["manager"], project) == Role.MANAGER
    assert effective_project_role(setup["owner"], project) == Role.MANAGER


def test_project_role_is_explicit_for_plain_members(setup):
    project = setup["project"]
    assert effective_project_role(setup["member"], project) == Role.VIEWER
    assert effective_project_role(setup["outsider"], project) == Role.NONE


def test_team_member_without_project_membership_has_no_project_role(setup):
    lurker = create_user("lurker")
    TeamMembership.objects.create(team=setup["team"], user=lurker)
    assert effective_project_role(lurker, setup["project"]) == Role.NONE


def test_readable_project_ids(setup):
    def ids(user):
        return set(
            Project.objects.filter(pk__in=readable_project_ids(user)).values_list(
                "pk",
                flat=True,
            ),
        )

    project_id = setup["project"].pk
    assert ids(setup["owner"]) == {project_id}
    assert ids(setup["manager"]) == {project_id}
    assert ids(setup["member"]) == {project_id}
    assert ids(setup["outsider"]) == set()


def test_global_admin_detection():
    assert is_global_admin(create_user("root", role="admin"))
    assert not is_global_admin(create_user("plain"))
    superuser = create_user("su", is_superuser=True)
    assert is_global_admin(superuser)
    inactive = create_user("gone", role="admin", is_active=False)
    assert not is_global_admin(inactive)
