from __future__ import annotations

import logging
from collections.abc import Iterable

from django.utils import timezone

from .models import Notification

logger = logging.getLogger(__name__)


def notify(  # noqa: PLR0913
    recipient,
    notification_type: str,
    title: str,
    message: str,
    *,
    sender=None,
    task=None,
    project=None,
    comment=None,
    priority: str | None = None,
    action_url: str = "",
) -> Notification | None:
    """Create a notification; the post_save signal pushes it to the user room.

    Users are never notified about their own actions.
    """

    if recipient is None or (sender is not None and recipient.pk == sender.pk):
        return None
    if project is None and task is not None:
        project = task.project
    extra = {"priority": priority} if priority else {}
    return Notification.objects.create(
        recipient=recipient,
        sender=sender,
        notification_type=notification_type,
        title=title[:200],
        message=message[:1000],
        task=task,
        project=project,
        comment=comment,
        action_url=action_url,
        **extra,
    )


def notify_many(
    recipients: Iterable,
    notification_type: str,
    title: str,
    message: str,
    **kwargs,
) -> list[Notification]:
    seen: set[int] = set()
    created = []
    for recipient in recipients:
        if recipient is None or recipient.pk in seen:
            continue
        seen.add(recipient.pk)
        notification = notify(recipient, notification_type, title, message, **kwargs)
        if notification is not None:
            created.append(notification)
    return created


def mark_read(notification: Notification) -> Notification:
    """Idempotent: the first read stamps ``read_at`` and later reads keep it."""

    if not notification.is_read:
        notification.is_read = True
        notification.read_at = timezone.now()
        notification.save(update_fields=["is_read", "read_at"])
    return notification


def mark_unread(notification: Notification) -> Notification:
    if notification.is_read:
        notification.is_read = False
        notification.read_at = None
        notification.save(update_fields=["is_read", "read_at"])
    return notification


def mark_all_read(user) -> int:
    updated = Notification.objects.filter(recipient=user, is_read=False).update(
        is_read=True,
        read_at=timezone.now(),
    )
    logger.debug("Marked %d notifications read for user %s", updated, user.pk)
    return updated


def unread_count(user) -> int:
    return Notification.objects.filter(recipient=user, is_read=False).count()
