import json
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from constants import MAX_FRAME_BYTES
from event_names import (
    ANSWER,
    AUTHENTICATE,
    CALL_ANSWER,
    CALL_END,
    CALL_OFFER,
    CALL_SIGNAL_EVENTS,
    ICE_CANDIDATE,
    JOIN_ROOM,
    LEAVE_ROOM,
    OFFER,
    ROOM_SIGNAL_EVENTS,
)

# Field names older clients used instead of "payload", per event.
# Inbound only: forwarded frames always carry the value under "payload".
LEGACY_PAYLOAD_KEYS = {
    OFFER: "offer",
    ANSWER: "answer",
    CALL_OFFER: "offer",
    CALL_ANSWER: "answer",
    ICE_CANDIDATE: "candidate",
}


class MalformedMessage(ValueError):
    """Inbound frame that does not match any known message shape."""


class InboundMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True, frozen=True)


class AuthenticateMessage(InboundMessage):
    event: Literal["authenticate"] = AUTHENTICATE
    user_identity: str = Field(alias="userIdentity", min_length=1)


class JoinRoomMessage(InboundMessage):
    event: Literal["join-room"] = JOIN_ROOM
    room_id: str = Field(alias="roomId", min_length=1)
    user_identity: Optional[str] = Field(default=None, alias="userIdentity")


class LeaveRoomMessage(InboundMessage):
    event: Literal["leave-room"] = LEAVE_ROOM
    room_id: str = Field(alias="roomId", min_length=1)


class RoomSignal(InboundMessage):
    """offer / answer / ice-candidate addressed to a connection handle."""

    event: Literal["offer", "answer", "ice-candidate"]
    to: str = Field(min_length=1)
    payload: Any
    room_id: str = Field(alias="roomId", min_length=1)

    @model_validator(mode="before")
    @classmethod
    def _legacy_payload(cls, data: Any) -> Any:
        return _promote_legacy_payload(data)


class CallSignal(InboundMessage):
    """call-offer / call-answer / ice-candidate addressed to a user identity."""

    event: Literal["call-offer", "call-answer", "ice-candidate"]
    to: str = Field(min_length=1)
    payload: Any
    call_id: str = Field(alias="callId", min_length=1)

    @model_validator(mode="before")
    @classmethod
    def _legacy_payload(cls, data: Any) -> Any:
        return _promote_legacy_payload(data)


class CallEndMessage(InboundMessage):
    event: Literal["call-end"] = CALL_END
    to: str = Field(min_length=1)
    call_id: str = Field(alias="callId", min_length=1)


Message = Union[AuthenticateMessage, JoinRoomMessage, LeaveRoomMessage, RoomSignal, CallSignal, CallEndMessage]


def _promote_legacy_payload(data: Any) -> Any:
    if not isinstance(data, dict) or "payload" in data:
        return data
    legacy_key = LEGACY_PAYLOAD_KEYS.get(data.get("event"))
    if legacy_key and legacy_key in data:
        data = dict(data)
        data["payload"] = data.pop(legacy_key)
    return data


def _is_scalar(value: Any) -> bool:
    return isinstance(value, (str, int)) and not isinstance(value, bool)


def _normalize_data(event: str, data: Any) -> dict:
    """Turn the shorthand payload forms clients send into a field mapping."""
    if event == AUTHENTICATE and _is_scalar(data):
        return {"userIdentity": data}
    if event == LEAVE_ROOM and _is_scalar(data):
        return {"roomId": data}
    if event == JOIN_ROOM and isinstance(data, list) and 1 <= len(data) <= 2:
        # join-room(roomId, userIdentity) as positional arguments
        return {"roomId": data[0], "userIdentity": data[1] if len(data) == 2 else None}
    if isinstance(data, dict):
        return data
    raise MalformedMessage(f"'{event}' data must be an object")


def _select_model(event: str, fields: dict):
    if event == AUTHENTICATE:
        return AuthenticateMessage
    if event == JOIN_ROOM:
        return JoinRoomMessage
    if event == LEAVE_ROOM:
        return LeaveRoomMessage
    if event == CALL_END:
        return CallEndMessage
    if event == ICE_CANDIDATE:
        has_room = fields.get("roomId") is not None
        has_call = fields.get("callId") is not None
        if has_room == has_call:
            raise MalformedMessage("'ice-candidate' needs exactly one of roomId or callId")
        return RoomSignal if has_room else CallSignal
    if event in ROOM_SIGNAL_EVENTS:
        return RoomSignal
    if event in CALL_SIGNAL_EVENTS:
        return CallSignal
    raise MalformedMessage(f"Unknown event '{event}'")


def parse_inbound(frame: Any) -> Message:
    """Validate a decoded `{"event", "data"}` frame into its message variant."""
    if not isinstance(frame, dict):
        raise MalformedMessage("Frame must be a JSON object")
    event = frame.get("event")
    if not isinstance(event, str) or not event:
        raise MalformedMessage("Frame is missing 'event'")

    fields = dict(_normalize_data(event, frame.get("data")))
    model = _select_model(event, fields)
    fields["event"] = event
    try:
        return model.model_validate(fields)
    except ValidationError as e:
        raise MalformedMessage(f"Invalid '{event}' message: {e.error_count()} error(s)") from e


def decode_frame(raw: str) -> Message:
    if len(raw.encode()) > MAX_FRAME_BYTES:
        raise MalformedMessage(f"Frame exceeds {MAX_FRAME_BYTES} bytes")
    try:
        frame = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedMessage(f"Frame is not valid JSON: {e.msg}") from e
    except RecursionError as e:
        raise MalformedMessage("Frame is nested too deeply") from e
    return parse_inbound(frame)


def outbound(event: str, data: Any) -> dict:
    return {"event": event, "data": data}
