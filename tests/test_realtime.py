"""Socket handshake, presence and conversation rooms."""
from datetime import timedelta

import pytest
from starlette.websockets import WebSocketDisconnect

from alumnet.realtime.protocol import AUTH_FAILED_CLOSE_CODE
from conftest import authenticate, make_token, receive_event


def _join(ws, conversation_id):
    ws.send_json({"event": "joinConversation", "data": conversation_id})
    return receive_event(ws, "joinedConversation")


def test_handshake_rejects_bad_token(client, network):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"event": "authenticate", "data": {"token": "garbage"}})

        frame = ws.receive_json()
        assert frame == {"event": "connect_error", "data": {"message": "Authentication error: Invalid token"}}

        with pytest.raises(WebSocketDisconnect) as closed:
            ws.receive_json()
        assert closed.value.code == AUTH_FAILED_CLOSE_CODE


def test_handshake_rejects_binary_frame(client, network):
    with client.websocket_connect("/ws") as ws:
        ws.send_bytes(b'{"event": "authenticate", "data": {}}')

        frame = ws.receive_json()
        assert frame == {"event": "connect_error", "data": {"message": "Authentication error: Malformed handshake"}}

        with pytest.raises(WebSocketDisconnect) as closed:
            ws.receive_json()
        assert closed.value.code == AUTH_FAILED_CLOSE_CODE


def test_handshake_rejects_expired_and_missing_tokens(client, network):
    expired = make_token(network.alice, expires_in=timedelta(minutes=-5))
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"event": "authenticate", "data": {"token": expired}})
        assert ws.receive_json()["event"] == "connect_error"

    with client.websocket_connect("/ws") as ws:
        ws.send_json({"event": "authenticate", "data": {}})
        assert ws.receive_json()["data"]["message"] == "Authentication error: No token provided"


def test_handshake_rejects_unknown_user(client, network):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"event": "authenticate", "data": {"token": make_token("ghost")}})
        assert ws.receive_json()["data"]["message"] == "Authentication error: User not found"


def test_presence_online_and_offline(client, network):
    with client.websocket_connect("/ws") as bob:
        me = authenticate(bob, network.bob)
        assert me["userId"] == network.bob
        assert me["user"]["name"] == "Bob Iyer"

        with client.websocket_connect("/ws") as alice:
            authenticate(alice, network.alice)
            online = receive_event(bob, "userOnline")
            assert online["userId"] == network.alice
            assert online["user"]["name"] == "Alice Rao"

        offline = receive_event(bob, "userOffline")
        assert offline["userId"] == network.alice
        assert offline["lastSeen"]


def test_joined_member_receives_new_messages(client, network, open_conversation, send):
    conversation_id = open_conversation(network.alice, network.bob)

    with client.websocket_connect("/ws") as bob:
        authenticate(bob, network.bob)
        assert _join(bob, conversation_id) == {"conversationId": conversation_id}

        sent = send(network.alice, conversation_id, "hello over the wire").json()["message"]

        event = receive_event(bob, "newMessage")
        assert event["conversationId"] == conversation_id
        assert event["message"]["id"] == sent["id"]
        assert event["message"]["content"] == "hello over the wire"
        assert event["message"]["sender"]["id"] == network.alice


def test_edit_and_delete_are_published(client, auth_headers, network, open_conversation, send):
    conversation_id = open_conversation(network.alice, network.bob)
    message_id = send(network.alice, conversation_id, "helo").json()["message"]["id"]

    with client.websocket_connect("/ws") as bob:
        authenticate(bob, network.bob)
        _join(bob, conversation_id)

        client.put(f"/api/messages/message/{message_id}/edit", json={"content": "hello"}, headers=auth_headers(network.alice))
        edited = receive_event(bob, "messageEdited")
        assert edited["message"]["content"] == "hello"
        assert edited["message"]["isEdited"] is True

        client.delete(f"/api/messages/message/{message_id}", headers=auth_headers(network.alice))
        deleted = receive_event(bob, "messageDeleted")
        assert deleted == {"messageId": message_id, "conversationId": conversation_id}


def test_outsider_cannot_join_conversation(client, network, open_conversation):
    conversation_id = open_conversation(network.alice, network.bob)

    with client.websocket_connect("/ws") as carol:
        authenticate(carol, network.carol)
        carol.send_json({"event": "joinConversation", "data": {"conversationId": conversation_id}})

        assert receive_event(carol, "error") == {"message": "Access denied to this conversation"}


def test_typing_and_read_relays(client, network, open_conversation):
    conversation_id = open_conversation(network.alice, network.bob)

    with client.websocket_connect("/ws") as bob, client.websocket_connect("/ws") as alice:
        authenticate(bob, network.bob)
        authenticate(alice, network.alice)
        _join(bob, conversation_id)
        _join(alice, conversation_id)

        alice.send_json({"event": "typing", "data": {"conversationId": conversation_id, "isTyping": True}})
        typing = receive_event(bob, "userTyping")
        assert typing["userId"] == network.alice
        assert typing["user"] == {"id": network.alice, "name": "Alice Rao"}
        assert typing["isTyping"] is True
        assert typing["conversationId"] == conversation_id

        # The claimed reader is ignored, the authenticated user is reported
        bob.send_json({"event": "markAsRead", "data": {"conversationId": conversation_id, "userId": network.carol}})
        read = receive_event(alice, "messagesRead")
        assert read == {"conversationId": conversation_id, "readBy": network.bob}


def test_typing_requires_joining_first(client, network, open_conversation):
    conversation_id = open_conversation(network.alice, network.bob)

    with client.websocket_connect("/ws") as alice:
        authenticate(alice, network.alice)
        alice.send_json({"event": "typing", "data": {"conversationId": conversation_id, "isTyping": True}})

        assert receive_event(alice, "error") == {"message": "Join the conversation first"}


def test_bad_frames_do_not_close_the_socket(client, network, open_conversation):
    conversation_id = open_conversation(network.alice, network.bob)

    with client.websocket_connect("/ws") as alice:
        authenticate(alice, network.alice)

        alice.send_json({"event": "dance", "data": None})
        assert receive_event(alice, "error") == {"message": "Unknown event: dance"}

        alice.send_text("{not json")
        assert receive_event(alice, "error") == {"message": "Malformed event payload"}

        alice.send_json({"event": "joinConversation", "data": "nope"})
        assert receive_event(alice, "error") == {"message": "Invalid conversation ID"}

        assert _join(alice, conversation_id) == {"conversationId": conversation_id}


def test_binary_frames_are_refused_without_closing(client, network, open_conversation):
    conversation_id = open_conversation(network.alice, network.bob)

    with client.websocket_connect("/ws") as alice:
        authenticate(alice, network.alice)

        alice.send_bytes(b'{"event": "joinConversation", "data": "x"}')
        assert receive_event(alice, "error") == {"message": "Only text frames are supported"}

        assert _join(alice, conversation_id) == {"conversationId": conversation_id}


def test_leave_stops_delivery(client, network, open_conversation, send):
    conversation_id = open_conversation(network.alice, network.bob)

    with client.websocket_connect("/ws") as bob:
        authenticate(bob, network.bob)
        _join(bob, conversation_id)

        bob.send_json({"event": "leaveConversation", "data": conversation_id})
        assert receive_event(bob, "leftConversation") == {"conversationId": conversation_id}

        send(network.alice, conversation_id, "anyone?")

        # Ping through a known event; nothing for the left room may arrive first
        bob.send_json({"event": "dance"})
        assert bob.receive_json()["event"] == "error"
