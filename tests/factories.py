from __future__ import annotations

from typing import TYPE_CHECKING

from django.contrib.auth import get_user_model

from taskhub.projects.models import Project
from taskhub.projects.models import ProjectMembership
from taskhub.tasks.models import Task
from taskhub.teams.models import Team
from taskhub.teams.models import TeamMembership

if TYPE_CHECKING:
    from collections.abc import Iterable

User = get_user_model()

TEST_PASSWORD = "TestPass123!"  # noqa: S105 - test credentials only


def create_user(username: str, *, role: str = "member", **extra) -> User:
    return User.objects.create_user(
        username=username,
        email=f"{username}@example.com",
        password=TEST_PASSWORD,
        role=role,
        **extra,
    )


def create_team(owner, *, name: str = "Core", members=None) -> Team:
    """Team with ``owner`` as admin member plus ``members`` ({user: role})."""

    team = Team.objects.create(name=name, owner=owner)
    TeamMembership.objects.create(team=team, user=owner, role=TeamMembership.Role.ADMIN)
    for user, role in (members or {}).items():
        TeamMembership.objects.create(team=team, user=user, role=role)
    return team


def create_project(team, owner, *, name: str = "Launch", members=None) -> Project:
    project = Project.objects.create(team=team, owner=owner, name=name)
    for user, role in (members or {}).items():
        ProjectMembership.objects.create(project=project, user=user, role=role)
    return project


def create_task(
    project,
    creator,
    *,
    title: str = "Write docs",
    assignees: Iterable = (),
    **fields,
) -> Task:
    task = Task.objects.create(project=project, creator=creator, title=title, **fields)
    if assignees:
        task.assignees.set(assignees)
    return task
