from __future__ import annotations

import logging
from pathlib import Path

from django.db import transaction

from taskhub.activity.utils import log_activity
from taskhub.notifications.models import Notification
from taskhub.notifications.services import notify_many
from taskhub.realtime import events

from .models import Attachment

logger = logging.getLogger(__name__)

IMAGE_EXTS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}


@transaction.atomic
def create_attachment(task, upload, *, actor) -> Attachment:
    name = Path(getattr(upload, "name", "") or "file").name
    attachment = Attachment.objects.create(
        task=task,
        uploaded_by=actor,
        file=upload,
        original_name=name[:255],
        content_type=getattr(upload, "content_type", "") or "",
        size=getattr(upload, "size", 0) or 0,
        is_image=Path(name).suffix.lower() in IMAGE_EXTS,
    )
    log_activity(
        "attachment_added",
        actor=actor,
        task=task,
        message=attachment.original_name,
        metadata={"size": attachment.size},
    )
    notify_many(
        [task.creator, *task.assignees.all()],
        Notification.Type.FILE_UPLOADED,
        "New attachment",
        f"{actor.display_name} attached {attachment.original_name} to '{task.title}'.",
        sender=actor,
        task=task,
    )
    events.publish_task_event(
        task,
        events.TASK_UPDATED,
        {"id": task.pk, "projectId": task.project_id, "changes": ["attachments"]},
    )
    return attachment


@transaction.atomic
def delete_attachment(attachment: Attachment, *, actor) -> None:
    task = attachment.task
    name = attachment.original_name
    storage_name = attachment.file.name
    attachment.delete()
    transaction.on_commit(lambda: _remove_file(attachment, storage_name))
    log_activity("attachment_removed", actor=actor, task=task, message=name)
    events.publish_task_event(
        task,
        events.TASK_UPDATED,
        {"id": task.pk, "projectId": task.project_id, "changes": ["attachments"]},
    )


def _remove_file(attachment: Attachment, storage_name: str) -> None:
    try:
        attachment.file.storage.delete(storage_name)
    except OSError:
        logger.exception("Could not remove attachment file %s", storage_name)
