"""Comment and reply lifecycle.

Creating a comment is one committed write; bumping the task's counter and
fanning out notifications are secondary effects that may fail without undoing
it. Only the author edits; soft-deleting a comment takes its replies with it.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import F
from django.db.models import Prefetch
from django.utils import timezone

from taskhub.access.roles import Role
from taskhub.access.roles import effective_project_role
from taskhub.activity.utils import log_activity
from taskhub.core.effects import best_effort
from taskhub.core.exceptions import NotFoundError
from taskhub.core.exceptions import ValidationError
from taskhub.core.lifecycle import Lifecycle
from taskhub.core.lifecycle import soft_delete
from taskhub.notifications.models import Notification
from taskhub.notifications.services import notify_many
from taskhub.realtime import events
from taskhub.tasks.models import Task

from .models import Comment
from .models import Reply

logger = logging.getLogger(__name__)

User = get_user_model()


def _author_payload(user) -> dict[str, Any]:
    return {"id": user.pk, "username": user.username, "name": user.display_name}


def build_reply_payload(reply: Reply) -> dict[str, Any]:
    return {
        "id": reply.pk,
        "commentId": reply.comment_id,
        "content": reply.content,
        "author": _author_payload(reply.author),
        "createdAt": reply.created_at.isoformat(),
    }


def build_comment_payload(comment: Comment) -> dict[str, Any]:
    return {
        "id": comment.pk,
        "taskId": comment.task_id,
        "projectId": comment.project_id,
        "content": comment.content,
        "author": _author_payload(comment.author),
        "mentions": sorted(comment.mentions.values_list("pk", flat=True)),
        "replies": [
            build_reply_payload(r)
            for r in comment.replies.filter(lifecycle=Lifecycle.ACTIVE)
        ],
        "isEdited": comment.is_edited,
        "createdAt": comment.created_at.isoformat(),
        "updatedAt": comment.updated_at.isoformat(),
    }


def active_comments(task: Task):
    return (
        Comment.objects.active()
        .filter(task=task)
        .select_related("author")
        .prefetch_related(
            "mentions",
            Prefetch(
                "replies",
                queryset=Reply.objects.active().select_related("author"),
            ),
        )
    )


def _mentionable(task: Task, user_ids: Iterable[int]) -> list:
    users = User.objects.filter(pk__in={int(pk) for pk in user_ids}, is_active=True)
    allowed = [
        u for u in users if effective_project_role(u, task.project) >= Role.VIEWER
    ]
    if len(allowed) != len(users):
        logger.info("Ignoring mentions of users outside project %s", task.project_id)
    return allowed


def _bump_comment_count(task_id: int, delta: int) -> None:
    qs = Task.objects.filter(pk=task_id)
    if delta < 0:
        qs = qs.filter(comment_count__gte=-delta)
    qs.update(comment_count=F("comment_count") + delta)


def _notify_discussion(comment: Comment, author, mentioned: list) -> None:
    task = comment.task
    mentioned_ids = {u.pk for u in mentioned}
    audience = [task.creator, *task.assignees.all()]
    notify_many(
        [u for u in audience if u.pk not in mentioned_ids],
        Notification.Type.COMMENT_ADDED,
        "New comment",
        f"{author.display_name} commented on '{task.title}'.",
        sender=author,
        task=task,
        comment=comment,
    )
    notify_many(
        mentioned,
        Notification.Type.COMMENT_MENTION,
        "You were mentioned",
        f"{author.display_name} mentioned you on '{task.title}'.",
        sender=author,
        task=task,
        comment=comment,
    )


def _check_content(content: str) -> str:
    content = (content or "").strip()
    if not content:
        msg = "Comment content cannot be empty."
        raise ValidationError(msg, details={"content": [msg]})
    return content


@transaction.atomic
def create_comment(
    task: Task,
    *,
    author,
    content: str,
    mention_ids: Iterable[int] = (),
) -> Comment:
    content = _check_content(content)
    comment = Comment.objects.create(
        task=task,
        project_id=task.project_id,
        author=author,
        content=content,
    )
    mentioned = _mentionable(task, mention_ids)
    if mentioned:
        comment.mentions.set(mentioned)

    best_effort("comment_count", _bump_comment_count, task.pk, 1)
    best_effort("comment_notify", _notify_discussion, comment, author, mentioned)
    best_effort(
        "comment_activity",
        log_activity,
        "comment_added",
        actor=author,
        task=task,
        message=content[:200],
    )
    events.publish_comment_event(
        comment,
        events.COMMENT_CREATED,
        build_comment_payload(comment),
    )
    return comment


@transaction.atomic
def update_comment(
    comment: Comment,
    *,
    actor,
    content: str,
    mention_ids: Iterable[int] | None = None,
) -> Comment:
    if comment.is_deleted:
        msg = "Comment not found."
        raise NotFoundError(msg)
    comment.content = _check_content(content)
    comment.is_edited = True
    comment.edited_at = timezone.now()
    comment.save(update_fields=["content", "is_edited", "edited_at", "updated_at"])
    if mention_ids is not None:
        before = set(comment.mentions.values_list("pk", flat=True))
        mentioned = _mentionable(comment.task, mention_ids)
        comment.mentions.set(mentioned)
        fresh = [u for u in mentioned if u.pk not in before]
        best_effort(
            "comment_mention_notify",
            notify_many,
            fresh,
            Notification.Type.COMMENT_MENTION,
            "You were mentioned",
            f"{actor.display_name} mentioned you on '{comment.task.title}'.",
            sender=actor,
            task=comment.task,
            comment=comment,
        )
    events.publish_comment_event(
        comment,
        events.COMMENT_UPDATED,
        build_comment_payload(comment),
    )
    return comment


@transaction.atomic
def delete_comment(comment: Comment, *, actor) -> Comment:
    if not soft_delete(comment, actor):
        return comment
    now = comment.deleted_at
    comment.replies.filter(lifecycle=Lifecycle.ACTIVE).update(
        lifecycle=Lifecycle.SOFT_DELETED,
        deleted_at=now,
        deleted_by=actor,
    )
    best_effort("comment_count", _bump_comment_count, comment.task_id, -1)
    events.publish_comment_event(
        comment,
        events.COMMENT_DELETED,
        {"id": comment.pk, "taskId": comment.task_id, "deletedBy": actor.pk},
    )
    return comment


@transaction.atomic
def add_reply(comment: Comment, *, author, content: str) -> Reply:
    if comment.is_deleted:
        msg = "Comment not found."
        raise NotFoundError(msg)
    reply = Reply.objects.create(
        comment=comment,
        author=author,
        content=_check_content(content),
    )
    best_effort(
        "reply_notify",
        notify_many,
        [comment.author],
        Notification.Type.COMMENT_ADDED,
        "New reply",
        f"{author.display_name} replied to your comment on '{comment.task.title}'.",
        sender=author,
        task=comment.task,
        comment=comment,
    )
    events.publish_comment_event(
        reply,
        events.REPLY_CREATED,
        build_reply_payload(reply),
    )
    return reply


@transaction.atomic
def delete_reply(reply: Reply, *, actor) -> Reply:
    if soft_delete(reply, actor):
        events.publish_comment_event(
            reply,
            events.REPLY_DELETED,
            {"id": reply.pk, "commentId": reply.comment_id, "deletedBy": actor.pk},
        )
    return reply


@transaction.atomic
def purge_soft_deleted(before) -> dict[str, int]:
    """Hard-delete comments and replies soft-deleted before ``before``."""

    replies, _ = Reply.objects.filter(
        lifecycle=Lifecycle.SOFT_DELETED,
        deleted_at__lt=before,
    ).delete()
    # Replies of a purged comment go with it through the FK cascade
    comments, per_model = Comment.objects.filter(
        lifecycle=Lifecycle.SOFT_DELETED,
        deleted_at__lt=before,
    ).delete()
    return {
        "comments": per_model.get(Comment._meta.label, 0),
        "replies": replies + per_model.get(Reply._meta.label, 0),
    }
