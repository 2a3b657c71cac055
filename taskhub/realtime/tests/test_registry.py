from asgiref.sync import async_to_sync

from taskhub.realtime.events import USER_OFFLINE
from taskhub.realtime.events import USER_ONLINE
from taskhub.realtime.registry import ConnectionRegistry
from tests.fakes import FakePresence
from tests.fakes import FakeTransport


def make_registry():
    transport = FakeTransport()
    presence = FakePresence()
    return ConnectionRegistry(transport, presence), transport, presence


def test_two_tabs_one_online_one_offline():
    registry, transport, presence = make_registry()

    assert async_to_sync(registry.register)(7, "a") is True
    assert async_to_sync(registry.register)(7, "b") is False
    assert registry.is_online(7)
    assert registry.connections_for(7) == {"a", "b"}

    assert async_to_sync(registry.unregister)(7, "a") is False
    assert registry.is_online(7)
    assert async_to_sync(registry.unregister)(7, "b") is True
    assert not registry.is_online(7)

    assert [e["event"] for e in transport.emitted] == [USER_ONLINE, USER_OFFLINE]
    assert transport.emitted[0]["skip_sid"] == "a"
    assert transport.emitted[0]["data"]["userId"] == 7
    assert presence.calls == [("online", 7), ("offline", 7)]


def test_unknown_sid_is_ignored():
    registry, transport, _ = make_registry()
    async_to_sync(registry.register)(1, "a")

    assert async_to_sync(registry.unregister)(1, "zzz") is False
    assert async_to_sync(registry.unregister)(2, "a") is False
    assert registry.is_online(1)
    assert len(transport.emitted) == 1


def test_listing_and_counts():
    registry, _, _ = make_registry()
    for user_id, sid in [(3, "x"), (1, "y"), (3, "z")]:
        async_to_sync(registry.register)(user_id, sid)

    assert registry.list_online() == [1, 3]
    assert registry.count_online() == 2


def test_force_disconnect_closes_every_socket():
    registry, transport, presence = make_registry()
    async_to_sync(registry.register)(5, "a")
    async_to_sync(registry.register)(5, "b")

    assert async_to_sync(registry.force_disconnect)(5) == 2

    assert transport.disconnected == ["a", "b"]
    assert not registry.is_online(5)
    assert transport.events(USER_OFFLINE)
    assert presence.calls[-1] == ("offline", 5)


def test_presence_failure_does_not_block_registration():
    class BrokenPresence(FakePresence):
        async def set_online(self, user_id):
            msg = "db down"
            raise RuntimeError(msg)

    transport = FakeTransport()
    registry = ConnectionRegistry(transport, BrokenPresence())

    assert async_to_sync(registry.register)(9, "a") is True
    assert registry.is_online(9)
    assert transport.events(USER_ONLINE)
