"""Shared fixtures: in-memory database, seeded users and signed tokens."""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["JWT_ALGORITHM"] = "HS256"

from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlmodel import Session

from alumnet.db.config import engine
from alumnet.db.init import drop_db, init_db
from alumnet.main import app
from alumnet.middleware.auth import JWT_ALGORITHM, JWT_SECRET
from alumnet.models import Connection, User, canonical_pair
from alumnet.realtime.hub import realtime_hub


def make_token(user_id: str, role: str = "alumni", expires_in: timedelta = timedelta(hours=1)) -> str:
    payload = {
        "sub": user_id,
        "role": role,
        "email": f"{user_id}@alumnet.test",
        "exp": datetime.utcnow() + expires_in,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def receive_event(ws, event: str, limit: int = 10):
    """Read frames until ``event`` arrives, skipping presence noise."""
    seen = []
    for _ in range(limit):
        frame = ws.receive_json()
        if frame["event"] == event:
            return frame["data"]
        seen.append(frame["event"])
    raise AssertionError(f"{event} not received, got {seen}")


def authenticate(ws, user_id: str, role: str = "alumni"):
    ws.send_json({"event": "authenticate", "data": {"token": make_token(user_id, role)}})
    return receive_event(ws, "authenticated")


@pytest.fixture(autouse=True)
def database():
    init_db()
    yield
    drop_db()


@pytest.fixture(autouse=True)
def reset_hub():
    yield
    realtime_hub.connections.clear()
    realtime_hub.rooms.clear()
    realtime_hub.active_users.clear()


@pytest.fixture
def client():
    # Entering the client keeps one event loop for REST calls and sockets
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def db_session():
    with Session(engine) as session:
        yield session


@pytest.fixture
def auth_headers():
    def _headers(user_id: str, role: str = "alumni") -> dict:
        return {"Authorization": f"Bearer {make_token(user_id, role)}"}
    return _headers


def _add_user(session: Session, user_id: str, name: str, role: str, verified: bool = True):
    session.add(User(
        id=user_id,
        name=name,
        email=f"{user_id}@alumnet.test",
        role=role,
        is_verified=verified,
    ))


def _connect(session: Session, user_a: str, user_b: str):
    first, second = canonical_pair(user_a, user_b)
    session.add(Connection(user1_id=first, user2_id=second))


@pytest.fixture
def network():
    """
    alice <-> bob <-> carol are connected; alice and carol are not.
    dave is an unverified student, root is the admin.
    """
    ids = SimpleNamespace(alice="alice", bob="bob", carol="carol", dave="dave", admin="root")
    with Session(engine) as session:
        _add_user(session, ids.alice, "Alice Rao", "alumni")
        _add_user(session, ids.bob, "Bob Iyer", "alumni")
        _add_user(session, ids.carol, "Carol Sen", "alumni")
        _add_user(session, ids.dave, "Dave Paul", "student", verified=False)
        _add_user(session, ids.admin, "Placement Cell", "admin")
        session.commit()
        _connect(session, ids.alice, ids.bob)
        _connect(session, ids.bob, ids.carol)
        session.commit()
    return ids


@pytest.fixture
def open_conversation(client, auth_headers, network):
    """Open (or fetch) the conversation between two users and return its id."""
    def _open(user_id: str, peer_id: str, role: str = "alumni") -> str:
        response = client.get(f"/api/messages/conversation/{peer_id}", headers=auth_headers(user_id, role))
        assert response.status_code == 200, response.json()
        return response.json()["conversation"]["id"]
    return _open


@pytest.fixture
def send(client, auth_headers):
    def _send(user_id: str, conversation_id: str, content: str):
        return client.post(
            f"/api/messages/conversation/{conversation_id}/send",
            json={"content": content},
            headers=auth_headers(user_id),
        )
    return _send
