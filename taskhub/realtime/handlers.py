"""Client -> server socket events.

Each handler takes the authenticated ``Connection`` and a validated payload
and returns an ``Ack``. Database work runs through ``database_sync_to_async``
and goes through the same guards and services as the HTTP API.
"""

from __future__ import annotations

import logging
from typing import Any

from channels.db import database_sync_to_async
from rest_framework import serializers

from taskhub.access.guards import Action
from taskhub.access.guards import ensure
from taskhub.comments import services as comment_services
from taskhub.comments.models import Comment
from taskhub.core.exceptions import NotFoundError
from taskhub.core.exceptions import ValidationError
from taskhub.notifications import services as notification_services
from taskhub.notifications.models import Notification
from taskhub.projects.models import Priority
from taskhub.projects.models import Project
from taskhub.tasks import services as task_services
from taskhub.tasks.models import Task
from taskhub.tasks.models import TaskStatus

from .dispatch import Ack
from .dispatch import Connection
from .dispatch import EventHandler
from .dispatch import snake_keys
from .rooms import project_room

logger = logging.getLogger(__name__)

TYPING_START = "typing:start"
TYPING_STOP = "typing:stop"


# Payloads ---------------------------------------------------------------------


class ProjectRefSerializer(serializers.Serializer):
    project_id = serializers.IntegerField(min_value=1)


class TaskRefSerializer(serializers.Serializer):
    task_id = serializers.IntegerField(min_value=1)


class CommentRefSerializer(serializers.Serializer):
    comment_id = serializers.IntegerField(min_value=1)


class CommentCreateSerializer(TaskRefSerializer):
    content = serializers.CharField(max_length=5000, trim_whitespace=True)
    mentions = serializers.ListField(
        child=serializers.IntegerField(min_value=1),
        required=False,
        default=list,
    )


class CommentUpdateSerializer(CommentRefSerializer):
    content = serializers.CharField(max_length=5000, trim_whitespace=True)
    mentions = serializers.ListField(
        child=serializers.IntegerField(min_value=1),
        required=False,
    )


class ReplyCreateSerializer(CommentRefSerializer):
    content = serializers.CharField(max_length=2000, trim_whitespace=True)


class CommentListSerializer(TaskRefSerializer):
    page = serializers.IntegerField(min_value=1, default=1)
    limit = serializers.IntegerField(min_value=1, max_value=100, default=20)


class TaskUpdateSerializer(TaskRefSerializer):
    changes = serializers.DictField()


class TaskChangesSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=200, required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    status = serializers.ChoiceField(choices=TaskStatus.choices, required=False)
    priority = serializers.ChoiceField(choices=Priority.choices, required=False)
    progress = serializers.IntegerField(min_value=0, max_value=100, required=False)
    start_date = serializers.DateTimeField(required=False, allow_null=True)
    due_date = serializers.DateTimeField(required=False, allow_null=True)
    assignee_ids = serializers.ListField(
        child=serializers.IntegerField(min_value=1),
        required=False,
    )


class NotificationRefSerializer(serializers.Serializer):
    notification_id = serializers.IntegerField(min_value=1)


class PresenceQuerySerializer(serializers.Serializer):
    user_ids = serializers.ListField(
        child=serializers.IntegerField(min_value=1),
        required=False,
    )


# Lookups ----------------------------------------------------------------------


def _project(project_id: int) -> Project:
    project = Project.objects.select_related("team").filter(pk=project_id).first()
    if project is None:
        msg = "Project not found."
        raise NotFoundError(msg)
    return project


def _task(task_id: int) -> Task:
    task = Task.objects.select_related("project__team").filter(pk=task_id).first()
    if task is None:
        msg = "Task not found."
        raise NotFoundError(msg)
    return task


def _comment(comment_id: int) -> Comment:
    comment = (
        Comment.objects.active()
        .select_related("task__project__team", "project__team", "author")
        .filter(pk=comment_id)
        .first()
    )
    if comment is None:
        msg = "Comment not found."
        raise NotFoundError(msg)
    return comment


# Rooms ------------------------------------------------------------------------


@database_sync_to_async
def _readable_project(user, project_id: int) -> Project:
    project = _project(project_id)
    ensure(user, Action.READ, project)
    return project


async def join_project(connection: Connection, data: dict[str, Any]) -> Ack:
    project = await _readable_project(connection.user, data["project_id"])
    room = project_room(project.pk)
    await connection.join(room)
    logger.debug("User %s joined %s", connection.user_id, room)
    return Ack.ok({"projectId": project.pk, "room": room})


async def leave_project(connection: Connection, data: dict[str, Any]) -> Ack:
    room = project_room(data["project_id"])
    await connection.leave(room)
    return Ack.ok({"projectId": data["project_id"], "room": room})


# Comments ---------------------------------------------------------------------


@database_sync_to_async
def _create_comment(user, data: dict[str, Any]) -> dict[str, Any]:
    task = _task(data["task_id"])
    ensure(user, Action.COMMENT, task)
    comment = comment_services.create_comment(
        task,
        author=user,
        content=data["content"],
        mention_ids=data.get("mentions", []),
    )
    return comment_services.build_comment_payload(comment)


async def create_comment(connection: Connection, data: dict[str, Any]) -> Ack:
    return Ack.ok(await _create_comment(connection.user, data))


@database_sync_to_async
def _update_comment(user, data: dict[str, Any]) -> dict[str, Any]:
    comment = _comment(data["comment_id"])
    ensure(user, Action.UPDATE, comment)
    comment = comment_services.update_comment(
        comment,
        actor=user,
        content=data["content"],
        mention_ids=data.get("mentions"),
    )
    return comment_services.build_comment_payload(comment)


async def update_comment(connection: Connection, data: dict[str, Any]) -> Ack:
    return Ack.ok(await _update_comment(connection.user, data))


@database_sync_to_async
def _delete_comment(user, data: dict[str, Any]) -> dict[str, Any]:
    comment = _comment(data["comment_id"])
    ensure(user, Action.DELETE, comment)
    comment_services.delete_comment(comment, actor=user)
    return {"id": comment.pk, "taskId": comment.task_id}


async def delete_comment(connection: Connection, data: dict[str, Any]) -> Ack:
    return Ack.ok(await _delete_comment(connection.user, data))


@database_sync_to_async
def _reply(user, data: dict[str, Any]) -> dict[str, Any]:
    comment = _comment(data["comment_id"])
    ensure(user, Action.REPLY, comment)
    reply = comment_services.add_reply(comment, author=user, content=data["content"])
    return comment_services.build_reply_payload(reply)


async def reply_to_comment(connection: Connection, data: dict[str, Any]) -> Ack:
    return Ack.ok(await _reply(connection.user, data))


@database_sync_to_async
def _list_comments(user, data: dict[str, Any]) -> dict[str, Any]:
    task = _task(data["task_id"])
    ensure(user, Action.READ, task)
    qs = comment_services.active_comments(task)
    total = qs.count()
    page, limit = data["page"], data["limit"]
    rows = qs[(page - 1) * limit : page * limit]
    return {
        "comments": [comment_services.build_comment_payload(c) for c in rows],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": -(-total // limit),
        },
    }


async def list_comments(connection: Connection, data: dict[str, Any]) -> Ack:
    return Ack.ok(await _list_comments(connection.user, data))


# Tasks ------------------------------------------------------------------------


@database_sync_to_async
def _update_task(user, data: dict[str, Any]) -> dict[str, Any]:
    task = _task(data["task_id"])
    raw = snake_keys(data["changes"])
    # Field-level guard first so a rejected request never reaches validation
    ensure(user, Action.UPDATE, task, fields=raw.keys())
    changes = TaskChangesSerializer(data=raw)
    if not changes.is_valid():
        msg = "Invalid task changes."
        raise ValidationError(msg, details=changes.errors)
    unknown = set(raw) - set(changes.validated_data)
    if unknown:
        msg = "Unknown task fields."
        raise ValidationError(msg, details={"fields": sorted(unknown)})
    task = task_services.update_task(task, changes.validated_data, actor=user)
    return task_services.build_task_payload(task)


async def update_task(connection: Connection, data: dict[str, Any]) -> Ack:
    return Ack.ok(await _update_task(connection.user, data))


# Notifications ----------------------------------------------------------------


@database_sync_to_async
def _read_notification(user, notification_id: int) -> dict[str, Any]:
    notification = Notification.objects.filter(
        pk=notification_id,
        recipient=user,
    ).first()
    if notification is None:
        msg = "Notification not found."
        raise NotFoundError(msg)
    notification_services.mark_read(notification)
    return {
        "id": notification.pk,
        "readAt": notification.read_at.isoformat(),
        "unreadCount": notification_services.unread_count(user),
    }


async def read_notification(connection: Connection, data: dict[str, Any]) -> Ack:
    return Ack.ok(await _read_notification(connection.user, data["notification_id"]))


async def unread_count(connection: Connection, data: dict[str, Any]) -> Ack:
    count = await database_sync_to_async(notification_services.unread_count)(
        connection.user,
    )
    return Ack.ok({"count": count})


# Presence ---------------------------------------------------------------------


async def list_presence(connection: Connection, data: dict[str, Any]) -> Ack:
    online = connection.registry.list_online()
    if data.get("user_ids"):
        wanted = set(data["user_ids"])
        online = [pk for pk in online if pk in wanted]
    return Ack.ok({"online": online, "count": len(online)})


@database_sync_to_async
def _typing_room(user, task_id: int) -> tuple[str, Task]:
    task = _task(task_id)
    ensure(user, Action.READ, task)
    return project_room(task.project_id), task


def _typing(event: str):
    async def handler(connection: Connection, data: dict[str, Any]) -> Ack:
        room, task = await _typing_room(connection.user, data["task_id"])
        payload = {
            "taskId": task.pk,
            "projectId": task.project_id,
            "userId": connection.user_id,
            "username": connection.user.username,
        }
        await connection.broadcast(room, event, payload)
        return Ack.ok()

    handler.__name__ = f"typing_{event.rsplit(':', 1)[-1]}"
    return handler


HANDLERS: dict[str, EventHandler] = {
    "project:join": EventHandler(join_project, ProjectRefSerializer),
    "project:leave": EventHandler(leave_project, ProjectRefSerializer),
    "comment:create": EventHandler(create_comment, CommentCreateSerializer),
    "comment:update": EventHandler(update_comment, CommentUpdateSerializer),
    "comment:delete": EventHandler(delete_comment, CommentRefSerializer),
    "comment:reply": EventHandler(reply_to_comment, ReplyCreateSerializer),
    "comment:list": EventHandler(list_comments, CommentListSerializer),
    "task:update": EventHandler(update_task, TaskUpdateSerializer),
    "notification:read": EventHandler(read_notification, NotificationRefSerializer),
    "notification:unread_count": EventHandler(unread_count),
    "presence:list": EventHandler(list_presence, PresenceQuerySerializer),
    TYPING_START: EventHandler(_typing(TYPING_START), TaskRefSerializer),
    TYPING_STOP: EventHandler(_typing(TYPING_STOP), TaskRefSerializer),
}
