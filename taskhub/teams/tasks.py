import logging

from celery import shared_task

from .services import expire_stale_invitations

logger = logging.getLogger(__name__)


@shared_task(name="teams.expire_invitations")
def expire_invitations() -> int:
    count = expire_stale_invitations()
    logger.info("Expired %d stale invitations", count)
    return count
