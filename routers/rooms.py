from fastapi import APIRouter, Depends, HTTPException, Request
from schemas.rooms import RoomSummary, RoomDetailsResponse, IceServer, IceServersResponse
from routers.dependencies import get_relay
from relay import SignalingRelay
from constants import ICE_SERVERS
from logging_config import get_logger

logger = get_logger(__name__)

rooms_router = APIRouter(tags=["rooms"])


@rooms_router.get("/rooms", response_model=list[RoomSummary])
async def list_rooms(relay: SignalingRelay = Depends(get_relay)):
    rooms = relay.registry.list_rooms()
    logger.debug(f"Listing {len(rooms)} active rooms")
    return [
        RoomSummary(room_id=room.room_id, created_at=room.created_at, member_count=len(room.members))
        for room in rooms
    ]


@rooms_router.get("/rooms/{room_id}", response_model=RoomDetailsResponse)
async def get_room_details(room_id: str, request: Request, relay: SignalingRelay = Depends(get_relay)):
    """
    Get the live membership of a room.

    Rooms exist only while at least one connection is in them, so a room
    that has emptied out is reported as not found.
    """
    client_host = request.client.host if request.client else 'unknown'
    logger.info(f"Room details request for {room_id} from {client_host}")

    room = relay.registry.get_room(room_id)
    if not room:
        logger.info(f"Room details failed: Room {room_id} not found")
        raise HTTPException(status_code=404, detail="Room not found")

    return RoomDetailsResponse(
        room_id=room.room_id,
        created_at=room.created_at,
        member_count=len(room.members),
        members=sorted(room.members),
    )


@rooms_router.get("/rtc/config", response_model=IceServersResponse)
async def get_rtc_config():
    # STUN only; media relaying through TURN is not offered
    return IceServersResponse(ice_servers=[IceServer(urls=url) for url in ICE_SERVERS])
