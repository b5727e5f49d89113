"""
Real-time hub.

Holds every authenticated WebSocket connection of this process, the rooms
they joined and the presence registry, and fans events out to them.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Set

from fastapi import WebSocket

from alumnet.realtime.protocol import ServerEvent
from alumnet.utils.logger import get_logger

logger = get_logger("alumnet.realtime")


def user_room(user_id: str) -> str:
    """Personal notification room of a user."""
    return f"user_{user_id}"


@dataclass(eq=False)
class ClientConnection:
    """One authenticated socket."""
    websocket: WebSocket
    user_id: str
    user: Dict[str, Any]
    rooms: Set[str] = field(default_factory=set)
    connected_at: datetime = field(default_factory=datetime.utcnow)

    async def send(self, event: str, data: Any) -> None:
        await self.websocket.send_json(ServerEvent(event=event, data=data).model_dump(mode="json"))


@dataclass
class ActiveUser:
    connection: ClientConnection
    user: Dict[str, Any]
    last_seen: datetime = field(default_factory=datetime.utcnow)


class RealtimeHub:
    """Process-local presence registry and room fan-out."""

    def __init__(self):
        self.connections: Set[ClientConnection] = set()
        self.rooms: Dict[str, Set[ClientConnection]] = {}
        # One entry per user: the most recent connection wins
        self.active_users: Dict[str, ActiveUser] = {}

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------
    def register(self, connection: ClientConnection) -> None:
        self.connections.add(connection)
        self.active_users[connection.user_id] = ActiveUser(
            connection=connection,
            user=connection.user,
        )
        self.join(connection, user_room(connection.user_id))
        logger.info(
            "User connected",
            user_id=connection.user_id,
            total_connections=len(self.connections),
        )

    def unregister(self, connection: ClientConnection) -> bool:
        """
        Drop a connection and every room membership it holds.

        Returns True when the user's presence entry belonged to this
        connection and was removed.
        """
        self._detach(connection)

        entry = self.active_users.get(connection.user_id)
        removed = entry is not None and entry.connection is connection
        if removed:
            del self.active_users[connection.user_id]

        logger.info(
            "User disconnected",
            user_id=connection.user_id,
            remaining_connections=len(self.connections),
        )
        return removed

    def _detach(self, connection: ClientConnection) -> None:
        """Stop routing to a connection. Presence is left to ``unregister``."""
        self.connections.discard(connection)
        for room in list(connection.rooms):
            self.leave(connection, room)

    def is_user_online(self, user_id: str) -> bool:
        return str(user_id) in self.active_users

    def get_user_connection(self, user_id: str) -> Optional[ClientConnection]:
        entry = self.active_users.get(str(user_id))
        return entry.connection if entry else None

    def get_active_users(self) -> List[Dict[str, Any]]:
        return [
            {
                "userId": user_id,
                "name": entry.user.get("name"),
                "profileUrl": entry.user.get("profileUrl"),
                "lastSeen": entry.last_seen.isoformat(),
            }
            for user_id, entry in self.active_users.items()
        ]

    # ------------------------------------------------------------------
    # Rooms
    # ------------------------------------------------------------------
    def join(self, connection: ClientConnection, room: str) -> None:
        self.rooms.setdefault(room, set()).add(connection)
        connection.rooms.add(room)

    def leave(self, connection: ClientConnection, room: str) -> None:
        members = self.rooms.get(room)
        if members is not None:
            members.discard(connection)
            if not members:
                del self.rooms[room]
        connection.rooms.discard(room)

    def room_size(self, room: str) -> int:
        return len(self.rooms.get(room, ()))

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------
    async def _safe_send(self, connection: ClientConnection, event: str, data: Any) -> bool:
        try:
            await connection.send(event, data)
            return True
        except Exception as e:
            logger.warning(
                "Dropping connection after failed send",
                user_id=connection.user_id,
                event=event,
                error=str(e),
            )
            return False

    async def _deliver(self, targets: List[ClientConnection], event: str, data: Any) -> int:
        if not targets:
            return 0

        results = await asyncio.gather(
            *[self._safe_send(conn, event, data) for conn in targets]
        )

        # The socket's own receive loop unregisters it and announces the user offline
        failed = [conn for conn, ok in zip(targets, results) if not ok]
        for conn in failed:
            self._detach(conn)

        return len(targets) - len(failed)

    async def emit_to_room(
        self,
        room: str,
        event: str,
        data: Any,
        exclude: Optional[ClientConnection] = None
    ) -> int:
        """Send to every member of ``room``. Returns the number of deliveries."""
        targets = [conn for conn in self.rooms.get(str(room), ()) if conn is not exclude]
        return await self._deliver(targets, event, data)

    async def emit_to_user(self, user_id: str, event: str, data: Any) -> int:
        return await self.emit_to_room(user_room(user_id), event, data)

    async def broadcast(self, event: str, data: Any, exclude: Optional[ClientConnection] = None) -> int:
        """Send to every connection of this process."""
        targets = [conn for conn in self.connections if conn is not exclude]
        return await self._deliver(targets, event, data)


# Global hub instance
realtime_hub = RealtimeHub()


def get_hub() -> RealtimeHub:
    """Dependency returning the process-wide hub."""
    return realtime_hub
