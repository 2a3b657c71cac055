from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from taskhub.access.roles import Role
from taskhub.access.roles import effective_project_role
from taskhub.activity.utils import log_activity
from taskhub.core.exceptions import ValidationError
from taskhub.notifications.models import Notification
from taskhub.notifications.services import notify
from taskhub.notifications.services import notify_many
from taskhub.realtime import events

from .models import Subtask
from .models import Task
from .models import TaskStatus
from .transitions import apply_status

logger = logging.getLogger(__name__)

User = get_user_model()


def build_task_payload(task: Task) -> dict[str, Any]:
    return {
        "id": task.pk,
        "projectId": task.project_id,
        "title": task.title,
        "status": task.status,
        "priority": task.priority,
        "progress": task.progress,
        "assignees": sorted(task.assignees.values_list("pk", flat=True)),
        "dueDate": task.due_date.isoformat() if task.due_date else None,
        "completedAt": task.completed_at.isoformat() if task.completed_at else None,
        "updatedAt": task.updated_at.isoformat() if task.updated_at else None,
    }


def _resolve_assignees(project, user_ids: Iterable[int]) -> list:
    ids = {int(pk) for pk in user_ids}
    users = list(User.objects.filter(pk__in=ids, is_active=True))
    missing = ids - {u.pk for u in users}
    outsiders = [
        u.pk for u in users if effective_project_role(u, project) < Role.MEMBER
    ]
    if missing or outsiders:
        msg = "Assignees must be active members of the project."
        raise ValidationError(
            msg,
            details={"assignees": sorted(missing | set(outsiders))},
        )
    return users


def _notify_assigned(task: Task, users: Iterable, actor) -> None:
    notify_many(
        users,
        Notification.Type.TASK_ASSIGNED,
        "New task assigned",
        f"You were assigned to '{task.title}'.",
        sender=actor,
        task=task,
        project=task.project,
    )


@transaction.atomic
def create_task(
    project,
    *,
    creator,
    assignee_ids: Iterable[int] = (),
    subtasks: Iterable[dict] = (),
    **fields,
) -> Task:
    status = fields.pop("status", TaskStatus.TODO)
    assignees = _resolve_assignees(project, assignee_ids)
    task = Task(project=project, creator=creator, **fields)
    apply_status(task, status)
    task.save()
    if assignees:
        task.assignees.set(assignees)
    for item in subtasks:
        Subtask.objects.create(task=task, **item)

    log_activity("task_created", actor=creator, task=task, message=task.title)
    _notify_assigned(task, assignees, creator)
    events.publish_task_event(task, events.TASK_CREATED, build_task_payload(task))
    return task


@transaction.atomic
def update_task(task: Task, changes: dict[str, Any], *, actor) -> Task:
    """Apply ``changes``; authorization is the caller's job."""

    changes = dict(changes)
    previous_status = task.status
    assignee_ids = changes.pop("assignee_ids", None)
    status = changes.pop("status", None)

    for field, value in changes.items():
        setattr(task, field, value)
    if status is not None:
        apply_status(task, status)
    task.save()

    added = []
    if assignee_ids is not None:
        current = set(task.assignees.values_list("pk", flat=True))
        users = _resolve_assignees(task.project, assignee_ids)
        task.assignees.set(users)
        added = [u for u in users if u.pk not in current]
        _notify_assigned(task, added, actor)

    changed = sorted(changes) + (["status"] if status is not None else [])
    if assignee_ids is not None:
        changed.append("assignees")
    log_activity(
        "task_updated",
        actor=actor,
        task=task,
        message=task.title,
        metadata={"fields": changed},
    )
    payload = build_task_payload(task)
    payload["changes"] = changed
    payload["updatedBy"] = actor.pk
    events.publish_task_event(task, events.TASK_UPDATED, payload)

    if task.status != previous_status:
        events.publish_task_event(
            task,
            events.TASK_STATUS_CHANGED,
            {
                "taskId": task.pk,
                "projectId": task.project_id,
                "from": previous_status,
                "to": task.status,
                "changedBy": actor.pk,
            },
        )
        if task.status == TaskStatus.COMPLETED:
            notify(
                task.creator,
                Notification.Type.TASK_COMPLETED,
                "Task completed",
                f"'{task.title}' was marked as completed.",
                sender=actor,
                task=task,
            )
    return task


@transaction.atomic
def delete_task(task: Task, *, actor) -> None:
    payload = {"id": task.pk, "projectId": task.project_id, "deletedBy": actor.pk}
    log_activity("task_deleted", actor=actor, project=task.project, message=task.title)
    events.publish_project_event(task.project_id, events.TASK_DELETED, payload)
    task.delete()


@transaction.atomic
def set_archived(task: Task, *, archived: bool, actor) -> Task:
    task.is_archived = archived
    task.save(update_fields=["is_archived", "updated_at"])
    log_activity(
        "task_archived" if archived else "task_restored",
        actor=actor,
        task=task,
        message=task.title,
    )
    events.publish_task_event(task, events.TASK_UPDATED, build_task_payload(task))
    return task


# Subtasks ---------------------------------------------------------------------


def _touch(task: Task, actor) -> None:
    task.save(update_fields=["updated_at"])
    payload = build_task_payload(task)
    payload["changes"] = ["subtasks"]
    payload["updatedBy"] = actor.pk
    events.publish_task_event(task, events.TASK_UPDATED, payload)


@transaction.atomic
def add_subtask(task: Task, *, actor, **fields) -> Subtask:
    subtask = Subtask.objects.create(task=task, **fields)
    _touch(task, actor)
    return subtask


@transaction.atomic
def update_subtask(subtask: Subtask, changes: dict[str, Any], *, actor) -> Subtask:
    was_completed = subtask.status == Subtask.Status.COMPLETED
    for field, value in changes.items():
        setattr(subtask, field, value)
    if subtask.status == Subtask.Status.COMPLETED and not was_completed:
        subtask.completed_at = timezone.now()
    elif subtask.status != Subtask.Status.COMPLETED:
        subtask.completed_at = None
    subtask.save()
    _touch(subtask.task, actor)
    if subtask.completed_at and not was_completed:
        notify(
            subtask.task.creator,
            Notification.Type.SUBTASK_COMPLETED,
            "Subtask completed",
            f"'{subtask.title}' on '{subtask.task.title}' was completed.",
            sender=actor,
            task=subtask.task,
        )
    return subtask


@transaction.atomic
def delete_subtask(subtask: Subtask, *, actor) -> None:
    task = subtask.task
    subtask.delete()
    _touch(task, actor)
