import pytest

from taskhub.notifications import services
from taskhub.notifications.models import Notification
from tests.factories import create_user

pytestmark = pytest.mark.django_db


@pytest.fixture
def user():
    return create_user("reader")


def test_users_are_not_notified_about_themselves(user):
    assert services.notify(user, "task_updated", "t", "m", sender=user) is None
    assert not Notification.objects.exists()


def test_notify_many_deduplicates(user):
    other = create_user("other")
    created = services.notify_many([user, other, user], "task_updated", "t", "m")
    assert len(created) == 2
    assert Notification.objects.filter(recipient=user).count() == 1


def test_mark_read_keeps_first_read_at(user):
    notification = services.notify(user, "task_updated", "Heads up", "Details")
    services.mark_read(notification)
    first = notification.read_at
    assert notification.is_read
    assert first is not None

    services.mark_read(notification)
    notification.refresh_from_db()
    assert notification.read_at == first


def test_mark_unread_clears_read_at(user):
    notification = services.notify(user, "task_updated", "Heads up", "Details")
    services.mark_read(notification)
    services.mark_unread(notification)
    notification.refresh_from_db()
    assert not notification.is_read
    assert notification.read_at is None


def test_mark_all_read_and_unread_count(user):
    for i in range(3):
        services.notify(user, "task_updated", f"n{i}", "m")
    services.notify(create_user("someone"), "task_updated", "x", "m")
    assert services.unread_count(user) == 3

    assert services.mark_all_read(user) == 3
    assert services.unread_count(user) == 0
