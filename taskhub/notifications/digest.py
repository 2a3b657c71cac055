"""Daily digest of unread notifications.

``execute`` never raises: per-user failures are logged and counted in the
returned ``DigestReport``. A cache lock keeps overlapping triggers apart across
web and worker processes.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import asdict
from dataclasses import dataclass
from dataclasses import field
from datetime import timedelta
from typing import Any

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.utils import timezone

from .email import DIGEST_SECTIONS
from .email import send_digest_email
from .models import Notification

logger = logging.getLogger(__name__)

User = get_user_model()

SECTION_BY_TYPE: dict[str, str] = {
    Notification.Type.TASK_ASSIGNED: "assignment",
    Notification.Type.TASK_COMPLETED: "completion",
    Notification.Type.SUBTASK_COMPLETED: "completion",
    Notification.Type.COMMENT_ADDED: "comment",
    Notification.Type.DEADLINE_APPROACHING: "due_soon",
    Notification.Type.TASK_OVERDUE: "due_soon",
    Notification.Type.TEAM_INVITATION: "invite",
    Notification.Type.COMMENT_MENTION: "mention",
}


@dataclass
class DigestReport:
    total_users: int = 0
    sent: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def group_notifications(notifications) -> dict[str, list]:
    grouped: dict[str, list] = {key: [] for key, _label in DIGEST_SECTIONS}
    for notification in notifications:
        section = SECTION_BY_TYPE.get(notification.notification_type, "other")
        grouped[section].append(notification)
    return grouped


def digest_recipients():
    return User.objects.filter(
        is_active=True,
        email_notifications=True,
        digest_frequency=User.DigestFrequency.DAILY,
    ).order_by("pk")


class DigestJob:
    """Digest runner whose lock and last result live in the Django cache.

    Web and worker processes share the cache, so ``status`` reports what the
    Celery worker last did and only one trigger runs at a time.
    """

    def __init__(
        self,
        sender: Callable[[Any, dict, int], None] = send_digest_email,
        *,
        key_prefix: str = "notifications:digest",
    ):
        self.sender = sender
        self.lock_key = f"{key_prefix}:lock"
        self.status_key = f"{key_prefix}:status"

    @property
    def running(self) -> bool:
        return cache.get(self.lock_key) is not None

    def _unread_since(self, user, since) -> list[Notification]:
        return list(
            Notification.objects.filter(
                recipient=user,
                is_read=False,
                created_at__gte=since,
            ).order_by("-created_at", "-id")[: settings.DIGEST_MAX_ITEMS],
        )

    def execute(self) -> DigestReport | None:
        """Send one digest per opted-in user. Returns None when already running."""

        # The lock expires with the task's hard time limit
        if not cache.add(
            self.lock_key,
            timezone.now().isoformat(),
            timeout=settings.CELERY_TASK_TIME_LIMIT,
        ):
            logger.warning("Digest job already running; skipping this trigger")
            return None
        report = DigestReport()
        try:
            since = timezone.now() - timedelta(hours=settings.DIGEST_LOOKBACK_HOURS)
            users = list(digest_recipients())
            report.total_users = len(users)
            for user in users:
                self._deliver(user, since, report)
        except Exception:
            logger.exception("Digest job aborted")
        finally:
            cache.set(
                self.status_key,
                {
                    "lastRunAt": timezone.now().isoformat(),
                    "lastReport": report.as_dict(),
                },
                timeout=None,
            )
            cache.delete(self.lock_key)
        logger.info(
            "Digest finished: users=%d sent=%d skipped=%d failed=%d",
            report.total_users,
            report.sent,
            report.skipped,
            report.failed,
        )
        return report

    def _deliver(self, user, since, report: DigestReport) -> None:
        try:
            notifications = self._unread_since(user, since)
            if not notifications:
                report.skipped += 1
                return
            self.sender(user, group_notifications(notifications), len(notifications))
        except Exception as exc:
            logger.exception("Digest delivery failed for user %s", user.pk)
            report.failed += 1
            report.errors.append({"userId": user.pk, "error": str(exc)})
            return
        report.sent += 1

    def status(self) -> dict[str, Any]:
        last = cache.get(self.status_key) or {}
        return {
            "running": self.running,
            "lastRunAt": last.get("lastRunAt"),
            "lastReport": last.get("lastReport"),
            "schedule": {
                "hour": settings.DIGEST_CRON_HOUR,
                "minute": settings.DIGEST_CRON_MINUTE,
            },
        }


digest_job = DigestJob()
