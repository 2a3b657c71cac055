from __future__ import annotations

import logging

from django.db import transaction

from taskhub.access.roles import Role
from taskhub.access.roles import effective_project_role
from taskhub.access.roles import is_global_admin
from taskhub.activity.utils import log_activity
from taskhub.core.exceptions import ConflictError
from taskhub.core.exceptions import NotFoundError
from taskhub.core.exceptions import ValidationError
from taskhub.notifications.models import Notification
from taskhub.notifications.services import notify
from taskhub.realtime import hub
from taskhub.realtime.rooms import project_room
from taskhub.tasks.models import Subtask
from taskhub.tasks.models import Task
from taskhub.teams.models import TeamMembership

from .models import Project
from .models import ProjectMembership

logger = logging.getLogger(__name__)


def _check_role(role: str) -> None:
    if role not in ProjectMembership.Role.values:
        msg = f"Unknown project role '{role}'."
        raise ValidationError(msg, details={"role": [msg]})


def _require_team_member(project: Project, user) -> None:
    if not TeamMembership.objects.filter(team_id=project.team_id, user=user).exists():
        msg = "User must be a member of the project's team."
        raise ValidationError(msg, details={"user": [msg]})


@transaction.atomic
def create_project(team, *, owner, **fields) -> Project:
    project = Project.objects.create(team=team, owner=owner, **fields)
    if TeamMembership.objects.filter(team=team, user=owner).exists():
        ProjectMembership.objects.create(
            project=project,
            user=owner,
            role=ProjectMembership.Role.MANAGER,
        )
    log_activity("project_created", actor=owner, project=project, message=project.name)
    return project


@transaction.atomic
def update_project(project: Project, changes: dict, *, actor=None) -> Project:
    for field, value in changes.items():
        setattr(project, field, value)
    project.save()
    log_activity(
        "project_updated",
        actor=actor,
        project=project,
        message=project.name,
        metadata={"fields": sorted(changes)},
    )
    return project


@transaction.atomic
def add_project_member(project: Project, user, role: str, *, actor=None):
    _check_role(role)
    _require_team_member(project, user)
    membership, created = ProjectMembership.objects.get_or_create(
        project=project,
        user=user,
        defaults={"role": role},
    )
    if not created:
        msg = "User is already a member of this project."
        raise ConflictError(msg)
    log_activity(
        "project_member_added",
        actor=actor,
        project=project,
        message=user.username,
        metadata={"user": user.pk, "role": role},
    )
    notify(
        user,
        Notification.Type.PROJECT_UPDATED,
        "Added to project",
        f"You were added to {project.name} as {membership.get_role_display()}.",
        sender=actor,
        project=project,
    )
    return membership


@transaction.atomic
def change_project_member_role(project: Project, user, role: str, *, actor=None):
    _check_role(role)
    try:
        membership = ProjectMembership.objects.get(project=project, user=user)
    except ProjectMembership.DoesNotExist as exc:
        msg = "User is not a member of this project."
        raise NotFoundError(msg) from exc
    membership.role = role
    membership.save(update_fields=["role"])
    log_activity(
        "project_member_role_changed",
        actor=actor,
        project=project,
        message=user.username,
        metadata={"user": user.pk, "to": role},
    )
    return membership


@transaction.atomic
def remove_project_member(project: Project, user, *, actor=None) -> None:
    deleted, _ = ProjectMembership.objects.filter(project=project, user=user).delete()
    if not deleted:
        msg = "User is not a member of this project."
        raise NotFoundError(msg)
    # Assignees must stay within the project's membership
    Task.assignees.through.objects.filter(
        task__project=project,
        user_id=user.pk,
    ).delete()
    Subtask.objects.filter(task__project=project, assigned_to=user).update(
        assigned_to=None,
    )
    # Team managers keep reading the project through their team role
    readable = effective_project_role(user, project) > Role.NONE
    if not readable and not is_global_admin(user):
        room = project_room(project.pk)
        transaction.on_commit(lambda: hub.evict_from_rooms(user.pk, [room]))
    log_activity(
        "project_member_removed",
        actor=actor,
        project=project,
        message=user.username,
        metadata={"user": user.pk},
    )


@transaction.atomic
def delete_project(project: Project, *, actor=None) -> None:
    team = project.team
    name = project.name
    project.delete()
    log_activity("project_deleted", actor=actor, team=team, message=name)
    logger.info("Project %s deleted by %s", name, getattr(actor, "pk", None))
