import pytest

from realtime.presence import PresenceRegistry
from realtime.relay import MessageRelay
from tests.helpers import BrokenChannel, FakeChannel


@pytest.fixture
async def presence():
    registry = PresenceRegistry()
    await registry.start()
    yield registry
    await registry.close()


@pytest.fixture
def relay(presence):
    return MessageRelay(presence)


async def test_connect_announces_to_other_peers(presence):
    alice, bob = FakeChannel(), FakeChannel()

    await presence.connect("alice", alice)
    await presence.connect("bob", bob)

    assert alice.sent == [{"event": "user:online", "data": {"userId": "bob"}}]
    assert bob.sent == []
    assert sorted(presence.online_user_ids()) == ["alice", "bob"]


async def test_disconnect_announces_offline(presence):
    alice, bob = FakeChannel(), FakeChannel()
    await presence.connect("alice", alice)
    await presence.connect("bob", bob)

    assert await presence.disconnect("bob", bob)

    assert not presence.is_online("bob")
    assert alice.events("user:offline") == [{"event": "user:offline", "data": {"userId": "bob"}}]


async def test_latest_connection_wins(presence):
    first, second = FakeChannel(), FakeChannel()
    await presence.connect("alice", first)
    await presence.connect("alice", second)

    assert presence.get("alice") is second

    # The superseded socket closing must not take the user offline
    assert not await presence.disconnect("alice", first)
    assert presence.get("alice") is second


async def test_relay_delivers_only_while_connected(presence, relay):
    alice = FakeChannel()
    await presence.connect("alice", alice)

    assert await relay.relay_message("bob", "alice", "hello", timestamp="2025-06-10T09:00:00Z", message_id="m1")
    assert alice.events("message:receive") == [
        {
            "event": "message:receive",
            "data": {"senderId": "bob", "message": "hello", "timestamp": "2025-06-10T09:00:00Z", "id": "m1"},
        }
    ]

    await presence.disconnect("alice", alice)

    assert not await relay.relay_message("bob", "alice", "are you there?")
    assert len(alice.events("message:receive")) == 1


async def test_relay_fills_in_timestamp_and_id(presence, relay):
    alice = FakeChannel()
    await presence.connect("alice", alice)

    await relay.relay_message("bob", "alice", "hi")

    envelope = alice.events("message:receive")[0]["data"]
    assert envelope["timestamp"]
    assert envelope["id"]


async def test_relay_to_broken_channel_is_not_delivered(presence, relay):
    await presence.connect("alice", BrokenChannel())

    assert not await relay.relay_message("bob", "alice", "hello")


async def test_typing_indicators(presence, relay):
    alice = FakeChannel()
    await presence.connect("alice", alice)

    assert await relay.relay_typing("bob", "alice", started=True)
    assert await relay.relay_typing("bob", "alice", started=False)
    assert not await relay.relay_typing("alice", "carol", started=True)

    assert [frame["event"] for frame in alice.sent] == ["typing:start", "typing:stop"]
    assert alice.sent[0]["data"] == {"userId": "bob"}


async def test_read_confirmation_goes_back_to_sender_only(presence, relay):
    alice, bob = FakeChannel(), FakeChannel()
    await presence.connect("alice", alice)
    await presence.connect("bob", bob)
    alice.sent.clear()

    await relay.confirm_read(bob, {"messageIds": ["m1", "m2"]})

    assert bob.sent == [{"event": "message:read:confirmed", "data": {"messageIds": ["m1", "m2"]}}]
    assert alice.sent == []


async def test_close_forgets_everyone(presence):
    await presence.connect("alice", FakeChannel())

    await presence.close()

    assert presence.online_user_ids() == []
    assert not presence.running


async def test_dead_channel_is_dropped_after_failed_push(presence, relay):
    alice, dead = FakeChannel(), BrokenChannel()
    await presence.connect("alice", alice)
    await presence.connect("bob", dead)

    assert not await relay.relay_message("alice", "bob", "hello")

    assert not presence.is_online("bob")
    assert alice.events("user:offline") == [{"event": "user:offline", "data": {"userId": "bob"}}]

    # The socket's own close handler finds nothing left to remove
    assert not await presence.disconnect("bob", dead)
    assert len(alice.events("user:offline")) == 1


async def test_broadcast_drops_dead_peers(presence):
    alice, dead = FakeChannel(), BrokenChannel()
    await presence.connect("bob", dead)
    await presence.connect("alice", alice)

    assert presence.online_user_ids() == ["alice"]
