from celery import shared_task

from .digest import digest_job


@shared_task(name="notifications.send_daily_digest")
def send_daily_digest_task() -> dict | None:
    """Celery beat entry point for the daily digest."""
    report = digest_job.execute()
    return report.as_dict() if report else None
