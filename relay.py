from typing import Any, Iterable, Optional

from constants import BROADCAST_TARGET
from event_names import CALL_END, CONNECTED, EXISTING_USERS, USER_JOINED, USER_LEFT
from logging_config import get_logger
from registry import RoomRegistry, Sink, UnknownConnection
from schemas.signaling import (
    AuthenticateMessage,
    CallEndMessage,
    CallSignal,
    JoinRoomMessage,
    LeaveRoomMessage,
    MalformedMessage,
    Message,
    RoomSignal,
    decode_frame,
    outbound,
)

logger = get_logger(__name__)


class SignalingRelay:
    """Routes signaling messages between connections registered in a RoomRegistry.

    Every handler is synchronous: frames are handed to each connection's sink,
    which must not block. Messages for targets that are not connected are
    dropped without telling the sender.
    """

    def __init__(self, registry: Optional[RoomRegistry] = None):
        self.registry = registry if registry is not None else RoomRegistry()

    # -- connection lifecycle -------------------------------------------------

    def on_connect(self, sink: Sink) -> str:
        connection = self.registry.connect(sink)
        logger.info(f"Connection {connection.handle} opened")
        self._send(connection.handle, CONNECTED, {"connectionHandle": connection.handle})
        return connection.handle

    def on_disconnect(self, handle: str):
        departures = self.registry.disconnect(handle)
        for room_id, remaining in departures:
            self._send_many(remaining, USER_LEFT, handle)
        logger.info(f"Connection {handle} closed, left {len(departures)} room(s)")

    # -- inbound --------------------------------------------------------------

    def handle_raw(self, handle: str, raw: str):
        """Decode one text frame from a connection and dispatch it.

        Malformed frames are logged and dropped.
        """
        try:
            message = decode_frame(raw)
        except MalformedMessage as e:
            logger.warning(f"Dropping malformed frame from connection {handle}: {e}")
            return
        self.dispatch(handle, message)

    def dispatch(self, handle: str, message: Message):
        if self.registry.get_connection(handle) is None:
            logger.debug(f"Ignoring '{message.event}' from unknown connection {handle}")
            return

        if isinstance(message, AuthenticateMessage):
            self.registry.authenticate(handle, message.user_identity)
        elif isinstance(message, JoinRoomMessage):
            self._join(handle, message)
        elif isinstance(message, LeaveRoomMessage):
            self._leave(handle, message.room_id)
        elif isinstance(message, RoomSignal):
            self._forward_to_handle(handle, message)
        elif isinstance(message, CallSignal):
            self._forward_to_identity(handle, message.event, message.to, message.call_id, message.payload)
        elif isinstance(message, CallEndMessage):
            self._forward_to_identity(handle, CALL_END, message.to, message.call_id)

    # -- room registry --------------------------------------------------------

    def _join(self, handle: str, message: JoinRoomMessage):
        room = self.registry.get_room(message.room_id)
        rejoin = room is not None and handle in room.members
        try:
            others = self.registry.join(message.room_id, handle)
        except (ValueError, UnknownConnection) as e:
            logger.warning(f"Join of room {message.room_id} by connection {handle} rejected: {e!r}")
            return

        user_identity = message.user_identity
        if user_identity is None:
            user_identity = self.registry.get_connection(handle).user_identity

        self._send(handle, EXISTING_USERS, others)
        if rejoin:
            logger.debug(f"Connection {handle} is already in room {message.room_id}")
            return
        self._send_many(others, USER_JOINED, {"userIdentity": user_identity, "connectionHandle": handle})
        logger.info(f"Connection {handle} joined room {message.room_id} with {len(others)} peer(s)")

    def _leave(self, handle: str, room_id: str):
        remaining = self.registry.leave(room_id, handle)
        if remaining is None:
            logger.debug(f"Connection {handle} is not in room {room_id}, nothing to leave")
            return
        self._send_many(remaining, USER_LEFT, handle)
        logger.info(f"Connection {handle} left room {room_id}")

    # -- routing --------------------------------------------------------------

    def _forward_to_handle(self, handle: str, message: RoomSignal):
        data = {"from": handle, "payload": message.payload, "roomId": message.room_id}

        if message.to == BROADCAST_TARGET:
            room = self.registry.get_room(message.room_id)
            if room is None or handle not in room.members:
                logger.debug(f"Dropping '{message.event}' broadcast: {handle} not in room {message.room_id}")
                return
            self._send_many([member for member in room.members if member != handle], message.event, data)
            return

        if not self._send(message.to, message.event, data):
            logger.debug(f"Dropping '{message.event}' from {handle}: target {message.to} not connected")

    def _forward_to_identity(self, handle: str, event: str, to: str, call_id: str, payload: Any = None):
        sender_identity = self.registry.get_connection(handle).user_identity
        if sender_identity is None:
            logger.warning(f"Dropping '{event}' from unauthenticated connection {handle}")
            return

        data = {"from": sender_identity, "callId": call_id}
        if event != CALL_END:
            data["payload"] = payload

        targets = self.registry.handles_for_identity(to)
        if not targets:
            logger.debug(f"Dropping '{event}' for call {call_id}: user {to} has no live connection")
            return
        self._send_many(targets, event, data)
        logger.debug(f"Forwarded '{event}' for call {call_id} from {sender_identity} to {len(targets)} connection(s)")

    # -- delivery -------------------------------------------------------------

    def _send(self, handle: str, event: str, data: Any) -> bool:
        connection = self.registry.get_connection(handle)
        if connection is None:
            return False
        connection.sink(outbound(event, data))
        return True

    def _send_many(self, handles: Iterable[str], event: str, data: Any):
        for target in handles:
            self._send(target, event, data)
