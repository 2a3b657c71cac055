import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from taskhub.comments.services import purge_soft_deleted

from .utils import purge_activity

logger = logging.getLogger(__name__)


@shared_task(name="activity.cleanup")
def cleanup() -> dict[str, int]:
    """Drop activity past retention and soft-deleted discussion past its grace."""
    now = timezone.now()
    activities = purge_activity(
        now - timedelta(days=settings.ACTIVITY_RETENTION_DAYS),
    )
    discussion = purge_soft_deleted(
        now - timedelta(days=settings.SOFT_DELETE_RETENTION_DAYS),
    )
    logger.info(
        "Cleanup removed activities=%d comments=%d replies=%d",
        activities,
        discussion["comments"],
        discussion["replies"],
    )
    return {"activities": activities, **discussion}
