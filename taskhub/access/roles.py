"""Effective role resolution.

Roles form a total order so guards compare against a threshold instead of
combining booleans. A team's owner resolves to ``OWNER``, which satisfies any
``ADMIN`` requirement. Team admins and managers are implicit project managers.
"""

from __future__ import annotations

from enum import IntEnum

from django.db.models import Q

from taskhub.projects.models import Project
from taskhub.projects.models import ProjectMembership
from taskhub.teams.models import Team
from taskhub.teams.models import TeamMembership


class Role(IntEnum):
    NONE = 0
    VIEWER = 1
    MEMBER = 2
    MANAGER = 3
    ADMIN = 4
    OWNER = 5


TEAM_ROLES: dict[str, Role] = {
    TeamMembership.Role.ADMIN: Role.ADMIN,
    TeamMembership.Role.MANAGER: Role.MANAGER,
    TeamMembership.Role.MEMBER: Role.MEMBER,
}

PROJECT_ROLES: dict[str, Role] = {
    ProjectMembership.Role.MANAGER: Role.MANAGER,
    ProjectMembership.Role.MEMBER: Role.MEMBER,
    ProjectMembership.Role.VIEWER: Role.VIEWER,
}


def _user_id(user) -> int | None:
    if user is None or not getattr(user, "is_authenticated", False):
        return None
    return user.pk


def is_global_admin(user) -> bool:
    if _user_id(user) is None or not getattr(user, "is_active", False):
        return False
    return bool(getattr(user, "is_superuser", False)) or (
        getattr(user, "role", None) == "admin"
    )


def effective_team_role(user, team: Team) -> Role:
    user_id = _user_id(user)
    if user_id is None:
        return Role.NONE
    if team.owner_id == user_id:
        return Role.OWNER
    role = (
        TeamMembership.objects.filter(team_id=team.pk, user_id=user_id)
        .values_list("role", flat=True)
        .first()
    )
    return TEAM_ROLES.get(role, Role.NONE)


def effective_project_role(user, project: Project) -> Role:
    user_id = _user_id(user)
    if user_id is None:
        return Role.NONE
    inherited = Role.NONE
    if effective_team_role(user, project.team) >= Role.MANAGER:
        inherited = Role.MANAGER
    explicit = PROJECT_ROLES.get(
        ProjectMembership.objects.filter(project_id=project.pk, user_id=user_id)
        .values_list("role", flat=True)
        .first(),
        Role.NONE,
    )
    return max(inherited, explicit)


def readable_team_ids(user):
    """Subquery of team ids ``user`` belongs to, for list filtering."""

    return TeamMembership.objects.filter(user_id=_user_id(user)).values("team_id")


def readable_project_ids(user):
    """Subquery of project ids readable by ``user``.

    Explicit project members, plus admins/managers/owner of the owning team.
    """

    user_id = _user_id(user)
    managed_teams = TeamMembership.objects.filter(
        user_id=user_id,
        role__in=[TeamMembership.Role.ADMIN, TeamMembership.Role.MANAGER],
    ).values("team_id")
    explicit = ProjectMembership.objects.filter(user_id=user_id).values("project_id")
    return Project.objects.filter(
        Q(team_id__in=managed_teams) | Q(pk__in=explicit) | Q(team__owner_id=user_id),
    ).values("pk")
