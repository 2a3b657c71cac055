"""Task status transitions.

``completed_at`` follows the status: it is stamped when a task enters
``completed`` and cleared when it leaves it.
"""

from __future__ import annotations

import logging

from django.utils import timezone

from taskhub.core.exceptions import ValidationError

from .models import Task
from .models import TaskStatus

logger = logging.getLogger(__name__)

TRANSITION_MATRIX: dict[str, frozenset[str]] = {
    TaskStatus.TODO: frozenset(
        {TaskStatus.IN_PROGRESS, TaskStatus.CANCELLED, TaskStatus.BLOCKED},
    ),
    TaskStatus.IN_PROGRESS: frozenset(
        {
            TaskStatus.TODO,
            TaskStatus.COMPLETED,
            TaskStatus.CANCELLED,
            TaskStatus.BLOCKED,
        },
    ),
    TaskStatus.BLOCKED: frozenset(
        {TaskStatus.TODO, TaskStatus.IN_PROGRESS, TaskStatus.CANCELLED},
    ),
    # Reopening
    TaskStatus.COMPLETED: frozenset({TaskStatus.IN_PROGRESS, TaskStatus.TODO}),
    TaskStatus.CANCELLED: frozenset({TaskStatus.TODO}),
}


def is_transition_valid(current: str, new: str) -> bool:
    return current == new or new in TRANSITION_MATRIX.get(current, frozenset())


def validate_transition(current: str, new: str) -> None:
    if is_transition_valid(current, new):
        return
    allowed = sorted(TRANSITION_MATRIX.get(current, frozenset()))
    logger.info("Blocked task transition %s -> %s", current, new)
    msg = f"Cannot move a task from '{current}' to '{new}'."
    raise ValidationError(msg, details={"status": [msg], "allowed": allowed})


def apply_status(task: Task, new_status: str) -> list[str]:
    """Set ``task.status`` in memory and keep ``completed_at``/``progress`` in step.

    Returns the names of the fields that changed; the caller saves.
    """

    validate_transition(task.status, new_status)
    if task.status == new_status:
        return []
    changed = ["status"]
    task.status = new_status
    if new_status == TaskStatus.COMPLETED:
        task.completed_at = timezone.now()
        task.progress = 100
        changed += ["completed_at", "progress"]
    elif task.completed_at is not None:
        task.completed_at = None
        changed.append("completed_at")
    return changed
