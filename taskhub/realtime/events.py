"""Room-scoped event publishing.

Mutations publish after their transaction commits, so subscribers of one
project see events in commit order. Delivery is best-effort: a failure to
resolve the owning project or to emit is logged and swallowed, never
propagated to the mutation that triggered it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from django.db import transaction

from taskhub.comments.models import Comment
from taskhub.comments.models import Reply
from taskhub.projects.models import Project
from taskhub.tasks.models import Task

from . import hub
from .rooms import project_room
from .rooms import user_room

logger = logging.getLogger(__name__)

COMMENT_CREATED = "comment:created"
COMMENT_UPDATED = "comment:updated"
COMMENT_DELETED = "comment:deleted"
REPLY_CREATED = "comment:reply:created"
REPLY_DELETED = "comment:reply:deleted"
TASK_CREATED = "task:created"
TASK_UPDATED = "task:updated"
TASK_DELETED = "task:deleted"
TASK_STATUS_CHANGED = "task:status_changed"
NOTIFICATION = "notification"
USER_ONLINE = "user:online"
USER_OFFLINE = "user:offline"

Emitter = Callable[[str, str, dict[str, Any]], Any]


class EventPublisher:
    def __init__(self, emitter: Emitter | None = None):
        self._emit = emitter or hub.emit

    def publish(self, project_id: int, event: str, payload: dict[str, Any]) -> bool:
        return self._send(project_room(project_id), event, payload)

    def publish_to_user(
        self,
        user_id: int,
        event: str,
        payload: dict[str, Any],
    ) -> bool:
        return self._send(user_room(user_id), event, payload)

    def publish_task_event(
        self,
        task: Task | int,
        event: str,
        payload: dict[str, Any],
    ) -> bool:
        project_id = self._project_for_task(task)
        if project_id is None:
            logger.warning("Dropping %s: task %s has no project", event, _pk(task))
            return False
        return self.publish(project_id, event, payload)

    def publish_comment_event(
        self,
        comment: Comment | Reply | int,
        event: str,
        payload: dict[str, Any],
    ) -> bool:
        project_id = self._project_for_comment(comment)
        if project_id is None:
            logger.warning(
                "Dropping %s: comment %s has no reachable project",
                event,
                _pk(comment),
            )
            return False
        return self.publish(project_id, event, payload)

    def _project_for_task(self, task: Task | int) -> int | None:
        if isinstance(task, Task):
            project_id = task.project_id
            if Project.objects.filter(pk=project_id).exists():
                return project_id
            return None
        return Task.objects.filter(pk=task).values_list("project_id", flat=True).first()

    def _project_for_comment(self, comment: Comment | Reply | int) -> int | None:
        if isinstance(comment, Reply):
            comment = comment.comment_id
        task_id = (
            comment.task_id
            if isinstance(comment, Comment)
            else Comment.objects.filter(pk=comment)
            .values_list("task_id", flat=True)
            .first()
        )
        if task_id is None:
            return None
        return self._project_for_task(task_id)

    def _send(self, room: str, event: str, payload: dict[str, Any]) -> bool:
        try:
            return bool(self._emit(room, event, payload))
        except Exception:
            logger.exception("Failed to publish %s to %s", event, room)
            return False


def _pk(obj) -> Any:
    return getattr(obj, "pk", obj)


publisher = EventPublisher()


def publish_task_event(task: Task | int, event: str, payload: dict[str, Any]) -> None:
    transaction.on_commit(lambda: publisher.publish_task_event(task, event, payload))


def publish_comment_event(
    comment: Comment | Reply | int,
    event: str,
    payload: dict[str, Any],
) -> None:
    transaction.on_commit(
        lambda: publisher.publish_comment_event(comment, event, payload),
    )


def publish_project_event(project_id: int, event: str, payload: dict[str, Any]) -> None:
    transaction.on_commit(lambda: publisher.publish(project_id, event, payload))


def publish_user_event(user_id: int, event: str, payload: dict[str, Any]) -> None:
    transaction.on_commit(lambda: publisher.publish_to_user(user_id, event, payload))


def build_notification_payload(notification) -> dict[str, Any]:
    return {
        "id": notification.id,
        "type": notification.notification_type,
        "title": notification.title,
        "message": notification.message,
        "priority": notification.priority,
        "isRead": notification.is_read,
        "taskId": notification.task_id,
        "projectId": notification.project_id,
        "commentId": notification.comment_id,
        "senderId": notification.sender_id,
        "actionUrl": notification.action_url,
        "createdAt": notification.created_at.isoformat(),
    }


def publish_notification_created(notification) -> bool:
    """Push a newly created notification to its recipient's room."""

    return publisher.publish_to_user(
        notification.recipient_id,
        NOTIFICATION,
        build_notification_payload(notification),
    )
