from fastapi import APIRouter, Depends
from schemas.rooms import HealthResponse
from routers.dependencies import get_relay
from relay import SignalingRelay

health_router = APIRouter(tags=["health"])


@health_router.get("/health", response_model=HealthResponse)
async def health(relay: SignalingRelay = Depends(get_relay)):
    return HealthResponse(
        status="ok",
        service="signaling",
        rooms=len(relay.registry.rooms),
        connections=len(relay.registry.connections),
    )
