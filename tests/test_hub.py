"""RealtimeHub bookkeeping without a server."""
import asyncio

from alumnet.realtime.hub import ClientConnection, RealtimeHub, user_room


class FakeWebSocket:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("socket is closed")
        self.sent.append(data)


def _connection(user_id: str, fail: bool = False) -> ClientConnection:
    return ClientConnection(websocket=FakeWebSocket(fail), user_id=user_id, user={"id": user_id, "name": user_id.title()})


def test_register_joins_personal_room():
    hub = RealtimeHub()
    alice = _connection("alice")

    hub.register(alice)

    assert hub.is_user_online("alice")
    assert hub.get_user_connection("alice") is alice
    assert hub.room_size(user_room("alice")) == 1
    assert user_room("alice") in alice.rooms


def test_last_connection_wins_presence():
    hub = RealtimeHub()
    first_tab = _connection("alice")
    second_tab = _connection("alice")
    hub.register(first_tab)
    hub.register(second_tab)

    # Closing the older socket leaves the user online
    assert hub.unregister(first_tab) is False
    assert hub.get_user_connection("alice") is second_tab

    assert hub.unregister(second_tab) is True
    assert not hub.is_user_online("alice")
    assert hub.rooms == {}


def test_emit_to_room_skips_excluded_connection():
    hub = RealtimeHub()
    alice, bob = _connection("alice"), _connection("bob")
    for conn in (alice, bob):
        hub.register(conn)
        hub.join(conn, "room-1")

    delivered = asyncio.run(hub.emit_to_room("room-1", "userTyping", {"isTyping": True}, exclude=alice))

    assert delivered == 1
    assert alice.websocket.sent == []
    assert bob.websocket.sent == [{"event": "userTyping", "data": {"isTyping": True}}]


def test_emit_to_empty_room_is_a_noop():
    hub = RealtimeHub()

    assert asyncio.run(hub.emit_to_room("nobody-here", "newMessage", {})) == 0


def test_failed_send_detaches_but_keeps_presence():
    hub = RealtimeHub()
    healthy, broken = _connection("alice"), _connection("bob", fail=True)
    for conn in (healthy, broken):
        hub.register(conn)

    delivered = asyncio.run(hub.broadcast("userOnline", {"userId": "carol"}))

    assert delivered == 1
    assert broken not in hub.connections
    assert broken.rooms == set()
    # The socket's own receive loop announces the user offline
    assert hub.is_user_online("bob")


def test_emit_to_user_reaches_personal_room():
    hub = RealtimeHub()
    bob = _connection("bob")
    hub.register(bob)

    asyncio.run(hub.emit_to_user("bob", "newMessage", {"conversationId": "c1"}))

    assert bob.websocket.sent[0]["event"] == "newMessage"


def test_leave_drops_empty_rooms():
    hub = RealtimeHub()
    alice = _connection("alice")
    hub.register(alice)
    hub.join(alice, "room-1")

    hub.leave(alice, "room-1")

    assert "room-1" not in hub.rooms
    assert "room-1" not in alice.rooms


def test_active_users_snapshot():
    hub = RealtimeHub()
    hub.register(_connection("alice"))

    users = hub.get_active_users()

    assert [u["userId"] for u in users] == ["alice"]
    assert users[0]["name"] == "Alice"
    assert users[0]["lastSeen"]
