"""Authorization guards.

``allow`` is a pure predicate: ownership OR role at/above a threshold OR the
global admin override. ``ensure`` is the same check raising
``AuthorizationError``; HTTP views and socket handlers both go through it.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from enum import Enum

from taskhub.attachments.models import Attachment
from taskhub.comments.models import Comment
from taskhub.comments.models import Reply
from taskhub.core.exceptions import AuthorizationError
from taskhub.projects.models import Project
from taskhub.tasks.models import Task
from taskhub.teams.models import Team

from .roles import Role
from .roles import effective_project_role
from .roles import effective_team_role
from .roles import is_global_admin

logger = logging.getLogger(__name__)


class Action(str, Enum):
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    CREATE_PROJECT = "create_project"
    INVITE = "invite"
    MANAGE_MEMBERS = "manage_members"
    CREATE_TASK = "create_task"
    COMMENT = "comment"
    REPLY = "reply"
    UPLOAD = "upload"


# Fields a plain member may change on a task they are assigned to
ASSIGNEE_FIELDS = frozenset({"status", "progress"})

TEAM_THRESHOLDS: dict[Action, Role] = {
    Action.READ: Role.MEMBER,
    Action.CREATE_PROJECT: Role.MANAGER,
    Action.INVITE: Role.MANAGER,
    Action.UPDATE: Role.ADMIN,
    Action.MANAGE_MEMBERS: Role.ADMIN,
    Action.DELETE: Role.OWNER,
}

PROJECT_THRESHOLDS: dict[Action, Role] = {
    Action.READ: Role.VIEWER,
    Action.COMMENT: Role.VIEWER,
    Action.CREATE_TASK: Role.MANAGER,
    Action.UPDATE: Role.MANAGER,
    Action.MANAGE_MEMBERS: Role.MANAGER,
    Action.DELETE: Role.MANAGER,
}

TASK_THRESHOLDS: dict[Action, Role] = {
    Action.READ: Role.VIEWER,
    Action.COMMENT: Role.VIEWER,
    Action.UPLOAD: Role.MEMBER,
    Action.UPDATE: Role.MANAGER,
    Action.DELETE: Role.MANAGER,
}

DISCUSSION_THRESHOLDS: dict[Action, Role] = {
    Action.READ: Role.VIEWER,
    Action.REPLY: Role.VIEWER,
}

ATTACHMENT_THRESHOLDS: dict[Action, Role] = {
    Action.READ: Role.VIEWER,
    Action.DELETE: Role.MANAGER,
}


def _meets(role: Role, thresholds: dict[Action, Role], action: Action) -> bool:
    threshold = thresholds.get(action)
    return threshold is not None and role >= threshold


def _team(actor, action: Action, team: Team, fields) -> bool:
    return _meets(effective_team_role(actor, team), TEAM_THRESHOLDS, action)


def _project(actor, action: Action, project: Project, fields) -> bool:
    role = effective_project_role(actor, project)
    # Ownership counts only while the owner still holds a working role
    if action == Action.UPDATE and project.owner_id == actor.pk:
        return role >= Role.MEMBER
    return _meets(role, PROJECT_THRESHOLDS, action)


def _task(actor, action: Action, task: Task, fields) -> bool:
    role = effective_project_role(actor, task.project)
    if action == Action.UPDATE and task.creator_id == actor.pk:
        return role >= Role.MEMBER
    if _meets(role, TASK_THRESHOLDS, action):
        return True
    if action != Action.UPDATE or role < Role.MEMBER:
        return False
    # Assignee path: a restricted field set or nothing
    if fields is None or not task.assignees.filter(pk=actor.pk).exists():
        return False
    requested = set(fields)
    return bool(requested) and requested <= ASSIGNEE_FIELDS


def _discussion(actor, action: Action, item: Comment | Reply, fields) -> bool:
    if action in {Action.UPDATE, Action.DELETE}:
        return item.author_id == actor.pk
    project = item.project if isinstance(item, Comment) else item.comment.project
    return _meets(
        effective_project_role(actor, project),
        DISCUSSION_THRESHOLDS,
        action,
    )


def _attachment(actor, action: Action, attachment: Attachment, fields) -> bool:
    if action == Action.DELETE and attachment.uploaded_by_id == actor.pk:
        return True
    return _meets(
        effective_project_role(actor, attachment.task.project),
        ATTACHMENT_THRESHOLDS,
        action,
    )


_RULES = (
    (Team, _team),
    (Project, _project),
    (Task, _task),
    (Comment, _discussion),
    (Reply, _discussion),
    (Attachment, _attachment),
)


def _admin_overrides(action: Action, resource) -> bool:
    # Edits to comments and replies stay with their author
    return not (
        action == Action.UPDATE and isinstance(resource, Comment | Reply)
    )


def allow(
    actor,
    action: Action,
    resource,
    *,
    fields: Iterable[str] | None = None,
) -> bool:
    if actor is None or not getattr(actor, "is_authenticated", False):
        return False
    if not getattr(actor, "is_active", False):
        return False
    if is_global_admin(actor) and _admin_overrides(action, resource):
        return True
    for model, rule in _RULES:
        if isinstance(resource, model):
            return rule(actor, action, resource, fields)
    return False


def log_denial(actor, action: Action, resource) -> None:
    logger.warning(
        "Access denied actor=%s action=%s resource=%s:%s",
        getattr(actor, "pk", None),
        getattr(action, "value", action),
        type(resource).__name__,
        getattr(resource, "pk", None),
    )


def ensure(
    actor,
    action: Action,
    resource,
    *,
    fields: Iterable[str] | None = None,
) -> None:
    """Raise ``AuthorizationError`` unless ``allow`` passes."""

    if not allow(actor, action, resource, fields=fields):
        log_denial(actor, action, resource)
        reason = f"{getattr(action, 'value', action)} on {type(resource).__name__}"
        raise AuthorizationError(reason)
