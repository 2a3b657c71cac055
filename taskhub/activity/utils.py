from __future__ import annotations

from django.contrib.auth import get_user_model

from .models import Activity


def log_activity(  # noqa: PLR0913
    action: str,
    *,
    actor: object | None = None,
    message: str = "",
    team=None,
    project=None,
    task=None,
    metadata: dict | None = None,
) -> Activity:
    user_model = get_user_model()
    actor_user = actor if isinstance(actor, user_model) else None
    if task is not None and project is None:
        project = task.project
    if project is not None and team is None:
        team = project.team
    return Activity.objects.create(
        action=action,
        actor=actor_user,
        message=message,
        team=team,
        project=project,
        task=task,
        metadata=metadata or {},
    )


def purge_activity(before) -> int:
    deleted, _ = Activity.objects.filter(created_at__lt=before).delete()
    return deleted
