from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from routers.rooms import rooms_router
from routers.health import health_router
from registry import RoomRegistry
from relay import SignalingRelay
import asyncio
from constants import CORS_ORIGINS, LOG_LEVEL, LOG_FILE, OUTBOX_MAX_FRAMES
from logging_config import get_logger, setup_logging

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)


async def drain_outbox(websocket: WebSocket, outbox: asyncio.Queue, handle: str):
    """Background task writing queued frames for one connection to its socket."""
    try:
        while True:
            frame = await outbox.get()
            await websocket.send_json(frame)
    except asyncio.CancelledError:
        logger.debug(f"Writer for connection {handle} stopped")
        raise
    except Exception as e:
        # The receive loop notices the dead socket and runs cleanup
        logger.warning(f"Error sending to connection {handle}: {e}")


def queue_sink(outbox: asyncio.Queue, client: str):
    """Sink for the relay that enqueues frames without blocking, dropping them when the outbox is full."""

    def sink(frame: dict):
        try:
            outbox.put_nowait(frame)
        except asyncio.QueueFull:
            logger.warning(f"Outbox for {client} is full, dropping '{frame.get('event')}' frame")

    return sink


async def websocket_endpoint(websocket: WebSocket):
    """Signaling WebSocket. Every frame is a JSON `{"event": ..., "data": ...}` object."""
    relay: SignalingRelay = websocket.app.state.relay
    await websocket.accept()

    client = f"{websocket.client.host}:{websocket.client.port}" if websocket.client else "unknown"
    outbox: asyncio.Queue = asyncio.Queue(maxsize=OUTBOX_MAX_FRAMES)
    handle = relay.on_connect(queue_sink(outbox, client))
    writer_task = asyncio.create_task(drain_outbox(websocket, outbox, handle))
    logger.info(f"WebSocket connection {handle} accepted from {client}")

    try:
        message_count = 0
        while True:
            try:
                message = await websocket.receive()
            except Exception as e:
                logger.error(f"Error receiving from connection {handle}: {e}", exc_info=True)
                break
            if message["type"] == "websocket.disconnect":
                logger.info(f"WebSocket disconnected for connection {handle} (code {message.get('code')})")
                break
            data = message.get("text")
            if data is None:
                logger.warning(f"Dropping non-text frame from connection {handle}")
                continue
            message_count += 1
            logger.debug(f"Received frame #{message_count} from connection {handle}")
            relay.handle_raw(handle, data)
    finally:
        # Runs exactly once per connection, however it ended
        relay.on_disconnect(handle)
        writer_task.cancel()
        try:
            await writer_task
        except asyncio.CancelledError:
            pass


def create_app() -> FastAPI:
    app = FastAPI(title="VibeSync Signaling Relay")

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # One registry per application, shared by every connection handler
    app.state.relay = SignalingRelay(RoomRegistry())

    app.include_router(rooms_router)
    app.include_router(health_router)
    app.add_api_websocket_route("/ws", websocket_endpoint)

    logger.info("FastAPI application initialized")
    return app


app = create_app()
