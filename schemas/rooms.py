from datetime import datetime
from pydantic import BaseModel


class RoomSummary(BaseModel):
    room_id: str
    created_at: datetime
    member_count: int

class RoomDetailsResponse(BaseModel):
    room_id: str
    created_at: datetime
    member_count: int
    members: list[str]

class IceServer(BaseModel):
    urls: str

class IceServersResponse(BaseModel):
    ice_servers: list[IceServer]

class HealthResponse(BaseModel):
    status: str
    service: str
    rooms: int
    connections: int
