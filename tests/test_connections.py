"""Connection requests and the gate they open."""
import pytest
from sqlmodel import select

from alumnet.errors import Forbidden, ValidationError
from alumnet.models import Connection, ConnectionRequest
from alumnet.services.connection_service import ConnectionGate, ConnectionService


def _request(client, auth_headers, from_user, to_user, message=""):
    return client.post(
        "/api/connection/request",
        json={"toUserId": to_user, "message": message},
        headers=auth_headers(from_user),
    )


def test_request_accept_then_message(client, auth_headers, network):
    sent = _request(client, auth_headers, network.carol, network.alice, "We were in the same batch!")
    assert sent.status_code == 201
    request = sent.json()["request"]
    assert request["status"] == "pending"
    assert request["fromUser"]["id"] == network.carol
    assert request["toUser"]["id"] == network.alice

    accepted = client.put(f"/api/connection/request/{request['id']}/accept", headers=auth_headers(network.alice))
    assert accepted.status_code == 200
    assert accepted.json()["request"]["status"] == "accepted"
    assert accepted.json()["connection"]["connectedUser"]["id"] == network.carol

    conversation = client.get(f"/api/messages/conversation/{network.carol}", headers=auth_headers(network.alice))
    assert conversation.status_code == 200


def test_request_validation(client, auth_headers, network):
    to_self = _request(client, auth_headers, network.alice, network.alice)
    assert to_self.status_code == 400
    assert to_self.json()["error"] == "Cannot send connection request to yourself"

    unknown = _request(client, auth_headers, network.alice, "ghost")
    assert unknown.status_code == 404

    already = _request(client, auth_headers, network.alice, network.bob)
    assert already.status_code == 400
    assert already.json()["error"] == "Already connected with this user"

    _request(client, auth_headers, network.alice, network.carol)
    duplicate = _request(client, auth_headers, network.carol, network.alice)
    assert duplicate.status_code == 400
    assert duplicate.json()["error"] == "Connection request already exists"


def test_only_the_recipient_can_answer(client, auth_headers, network):
    request_id = _request(client, auth_headers, network.carol, network.alice).json()["request"]["id"]

    response = client.put(f"/api/connection/request/{request_id}/accept", headers=auth_headers(network.carol))

    assert response.status_code == 403


def test_decline_keeps_users_apart(client, auth_headers, network):
    request_id = _request(client, auth_headers, network.carol, network.alice).json()["request"]["id"]

    declined = client.put(f"/api/connection/request/{request_id}/decline", headers=auth_headers(network.alice))
    assert declined.status_code == 200

    again = client.put(f"/api/connection/request/{request_id}/accept", headers=auth_headers(network.alice))
    assert again.status_code == 400
    assert again.json()["error"] == "Request is no longer pending"

    conversation = client.get(f"/api/messages/conversation/{network.alice}", headers=auth_headers(network.carol))
    assert conversation.status_code == 403


def test_withdraw_pending_request(client, auth_headers, network):
    request_id = _request(client, auth_headers, network.carol, network.alice).json()["request"]["id"]

    denied = client.delete(f"/api/connection/request/{request_id}/withdraw", headers=auth_headers(network.alice))
    assert denied.status_code == 404

    withdrawn = client.delete(f"/api/connection/request/{request_id}/withdraw", headers=auth_headers(network.carol))
    assert withdrawn.status_code == 200

    status = client.get(f"/api/connection/status/{network.alice}", headers=auth_headers(network.carol))
    assert status.json()["status"] == "not_connected"


def test_status_and_pending_lists(client, auth_headers, network):
    _request(client, auth_headers, network.carol, network.alice)

    sent = client.get(f"/api/connection/status/{network.alice}", headers=auth_headers(network.carol)).json()
    received = client.get(f"/api/connection/status/{network.carol}", headers=auth_headers(network.alice)).json()
    connected = client.get(f"/api/connection/status/{network.bob}", headers=auth_headers(network.alice)).json()
    assert sent["status"] == "request_sent"
    assert received["status"] == "request_received"
    assert connected["status"] == "connected"

    requests = client.get(
        "/api/connection/requests", params={"type": "received"}, headers=auth_headers(network.alice)
    ).json()["requests"]
    assert [r["fromUser"]["id"] for r in requests["received"]] == [network.carol]
    assert requests["sent"] == []

    invalid = client.get("/api/connection/requests", params={"type": "bogus"}, headers=auth_headers(network.alice))
    assert invalid.status_code == 400


def test_my_connections(client, auth_headers, network):
    response = client.get("/api/connection/my-connections", headers=auth_headers(network.bob))
    body = response.json()

    assert body["pagination"]["totalCount"] == 2
    assert {c["connectedUser"]["id"] for c in body["connections"]} == {network.alice, network.carol}


def test_removed_connection_closes_gate_and_allows_reconnecting(client, auth_headers, network):
    request_id = _request(client, auth_headers, network.carol, network.alice).json()["request"]["id"]
    connection_id = client.put(
        f"/api/connection/request/{request_id}/accept", headers=auth_headers(network.alice)
    ).json()["connection"]["id"]

    removed = client.delete(f"/api/connection/{connection_id}", headers=auth_headers(network.carol))
    assert removed.status_code == 200

    gated = client.get(f"/api/messages/conversation/{network.alice}", headers=auth_headers(network.carol))
    assert gated.status_code == 403

    again = _request(client, auth_headers, network.carol, network.alice)
    assert again.status_code == 201


def test_accept_is_all_or_nothing(db_session, network, monkeypatch):
    service = ConnectionService(db_session)
    request = service.send_request(network.carol, network.alice)
    request_id = request.id

    def failing_create(self, request):
        raise RuntimeError("connections table unavailable")

    monkeypatch.setattr(ConnectionService, "_create_connection", failing_create)

    with pytest.raises(RuntimeError):
        service.accept_request(network.alice, request_id)

    db_session.expire_all()
    stored = db_session.get(ConnectionRequest, request_id)
    assert stored.status == "pending"
    assert not ConnectionGate(db_session).are_connected(network.carol, network.alice)


def test_gate_rules(db_session, network):
    gate = ConnectionGate(db_session)

    assert gate.can_message(network.alice, network.bob)
    assert gate.can_message(network.bob, network.alice)
    assert not gate.can_message(network.alice, network.carol)
    assert gate.can_message(network.admin, network.carol, sender_is_admin=True)
    assert not gate.can_message(network.admin, network.dave, sender_is_admin=True)


def test_service_errors_are_typed(db_session, network):
    service = ConnectionService(db_session)
    request = service.send_request(network.carol, network.alice)

    with pytest.raises(Forbidden):
        service.decline_request(network.carol, request.id)
    with pytest.raises(ValidationError):
        service.send_request(network.alice, network.carol)

    assert len(db_session.exec(select(Connection)).all()) == 2
