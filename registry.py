import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Set, Tuple

from logging_config import get_logger

logger = get_logger(__name__)

Sink = Callable[[dict], None]


class UnknownConnection(KeyError):
    """Raised when an operation names a connection handle that is not live."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Room:
    room_id: str
    members: Set[str] = field(default_factory=set)
    created_at: datetime = field(default_factory=_utcnow)


@dataclass
class Connection:
    handle: str
    sink: Sink
    user_identity: Optional[str] = None
    rooms: Set[str] = field(default_factory=set)


class RoomRegistry:
    """In-memory room membership and identity index for one server process.

    All methods are synchronous and never await, so on a single event loop
    every mutation runs to completion before the next one starts.
    """

    def __init__(self):
        self.rooms: Dict[str, Room] = {}
        self.connections: Dict[str, Connection] = {}
        # identity -> handles of live connections authenticated as that identity
        self.identities: Dict[str, Set[str]] = {}

    def connect(self, sink: Sink) -> Connection:
        handle = uuid.uuid4().hex
        connection = Connection(handle=handle, sink=sink)
        self.connections[handle] = connection
        logger.debug(f"Registered connection {handle} ({len(self.connections)} live)")
        return connection

    def authenticate(self, handle: str, user_identity: str):
        """Attach a durable identity to a connection, replacing any earlier one."""
        connection = self.connections.get(handle)
        if connection is None:
            logger.debug(f"Ignoring authenticate for unknown connection {handle}")
            return
        if connection.user_identity is not None:
            self._unindex(handle, connection.user_identity)
        connection.user_identity = user_identity
        self.identities.setdefault(user_identity, set()).add(handle)
        logger.debug(f"Connection {handle} authenticated as {user_identity}")

    def join(self, room_id: str, handle: str) -> List[str]:
        """Add a connection to a room, creating the room on first join.

        Returns the handles of the other members, in no particular order.
        """
        if not room_id:
            raise ValueError("room_id must be a non-empty string")
        connection = self.connections.get(handle)
        if connection is None:
            raise UnknownConnection(handle)

        room = self.rooms.get(room_id)
        if room is None:
            room = Room(room_id=room_id)
            self.rooms[room_id] = room
            logger.info(f"Room {room_id} created")

        room.members.add(handle)
        connection.rooms.add(room_id)
        others = [member for member in room.members if member != handle]
        logger.debug(f"Connection {handle} in room {room_id} ({len(room.members)} members)")
        return others

    def leave(self, room_id: str, handle: str) -> Optional[List[str]]:
        """Remove a connection from a room.

        Returns the remaining members, or None if the connection was not a
        member. The room is deleted as soon as its last member leaves.
        """
        room = self.rooms.get(room_id)
        if room is None or handle not in room.members:
            return None

        room.members.discard(handle)
        connection = self.connections.get(handle)
        if connection is not None:
            connection.rooms.discard(room_id)

        remaining = list(room.members)
        if not remaining:
            del self.rooms[room_id]
            logger.info(f"Room {room_id} is empty, removed")
        else:
            logger.debug(f"Connection {handle} left room {room_id} ({len(remaining)} members)")
        return remaining

    def disconnect(self, handle: str) -> List[Tuple[str, List[str]]]:
        """Forget a connection entirely.

        Returns (room_id, remaining_members) for every room the connection was
        removed from. A second call for the same handle returns an empty list.
        """
        connection = self.connections.pop(handle, None)
        if connection is None:
            return []

        departures = []
        for room_id in sorted(connection.rooms):
            remaining = self.leave(room_id, handle)
            if remaining is not None:
                departures.append((room_id, remaining))
        connection.rooms.clear()

        if connection.user_identity is not None:
            self._unindex(handle, connection.user_identity)
        logger.debug(f"Unregistered connection {handle} ({len(self.connections)} live)")
        return departures

    def _unindex(self, handle: str, user_identity: str):
        handles = self.identities.get(user_identity)
        if not handles:
            return
        handles.discard(handle)
        if not handles:
            del self.identities[user_identity]

    def get_room(self, room_id: str) -> Optional[Room]:
        return self.rooms.get(room_id)

    def get_connection(self, handle: str) -> Optional[Connection]:
        return self.connections.get(handle)

    def handles_for_identity(self, user_identity: str) -> List[str]:
        return list(self.identities.get(user_identity, ()))

    def list_rooms(self) -> List[Room]:
        return sorted(self.rooms.values(), key=lambda room: room.created_at)
