from datetime import timedelta

import pytest
from django.core import mail
from django.core.cache import cache

from taskhub.core.exceptions import UpstreamError
from taskhub.notifications.digest import DigestJob
from taskhub.notifications.digest import group_notifications
from taskhub.notifications.models import Notification
from taskhub.notifications.services import notify
from taskhub.notifications.tasks import send_daily_digest_task
from tests.factories import create_user

pytestmark = pytest.mark.django_db


@pytest.fixture(autouse=True)
def _clear_cache():
    cache.clear()
    yield
    cache.clear()


class RecordingSender:
    def __init__(self, fail_for=()):
        self.fail_for = set(fail_for)
        self.calls = []

    def __call__(self, user, grouped, total):
        if user.username in self.fail_for:
            msg = "smtp refused"
            raise UpstreamError(msg)
        self.calls.append((user.username, grouped, total))


def test_sections_group_by_type():
    user = create_user("alice")
    notify(user, Notification.Type.TASK_ASSIGNED, "a", "m")
    notify(user, Notification.Type.COMMENT_MENTION, "b", "m")
    notify(user, Notification.Type.SYSTEM_ANNOUNCEMENT, "c", "m")

    grouped = group_notifications(Notification.objects.all())

    assert [n.title for n in grouped["assignment"]] == ["a"]
    assert [n.title for n in grouped["mention"]] == ["b"]
    assert [n.title for n in grouped["other"]] == ["c"]
    assert grouped["due_soon"] == []


def test_digest_sends_skips_and_counts_failures():
    alice = create_user("alice")
    create_user("bob")
    carol = create_user("carol")
    create_user("dave", digest_frequency="never")
    notify(alice, Notification.Type.TASK_ASSIGNED, "New task", "m")
    notify(alice, Notification.Type.COMMENT_ADDED, "New comment", "m")
    notify(carol, Notification.Type.TASK_ASSIGNED, "New task", "m")
    sender = RecordingSender(fail_for={"carol"})

    report = DigestJob(sender=sender).execute()

    assert report.total_users == 3
    assert report.sent == 1
    assert report.skipped == 1
    assert report.failed == 1
    assert report.errors == [{"userId": carol.pk, "error": "smtp refused"}]
    ((username, grouped, total),) = sender.calls
    assert username == "alice"
    assert total == 2
    assert len(grouped["assignment"]) == 1
    assert len(grouped["comment"]) == 1


def test_digest_ignores_read_and_old_notifications():
    alice = create_user("alice")
    read = notify(alice, Notification.Type.TASK_ASSIGNED, "read", "m")
    read.is_read = True
    read.save()
    old = notify(alice, Notification.Type.TASK_ASSIGNED, "old", "m")
    Notification.objects.filter(pk=old.pk).update(
        created_at=old.created_at - timedelta(days=3),
    )
    sender = RecordingSender()

    report = DigestJob(sender=sender).execute()

    assert report.skipped == 1
    assert sender.calls == []


def test_overlapping_trigger_is_skipped():
    job = DigestJob(sender=RecordingSender())
    cache.add(job.lock_key, "held by another worker")

    assert job.running is True
    assert job.execute() is None
    assert job.status()["lastReport"] is None


def test_status_is_shared_through_the_cache():
    worker = DigestJob(sender=RecordingSender())
    web = DigestJob(sender=RecordingSender())
    assert web.status()["lastRunAt"] is None

    worker.execute()

    status = web.status()
    assert status["running"] is False
    assert status["lastRunAt"] is not None
    assert status["lastReport"]["total_users"] == 0
    assert cache.get(worker.lock_key) is None


def test_lock_is_released_when_a_run_aborts(monkeypatch):
    def broken():
        msg = "db gone"
        raise RuntimeError(msg)

    monkeypatch.setattr("taskhub.notifications.digest.digest_recipients", broken)
    job = DigestJob(sender=RecordingSender())

    report = job.execute()

    assert report.total_users == 0
    assert job.running is False
    assert job.status()["lastReport"] == report.as_dict()


def test_celery_task_sends_real_email(settings):
    settings.FRONTEND_URL = "https://app.example.com"
    alice = create_user("alice")
    notify(alice, Notification.Type.TASK_ASSIGNED, "Write docs", "m")

    result = send_daily_digest_task.apply().get()

    assert result["sent"] == 1
    assert len(mail.outbox) == 1
    message = mail.outbox[0]
    assert message.to == ["alice@example.com"]
    assert message.subject == "Your daily digest: 1 update"
    assert "https://app.example.com/notifications" in message.body
