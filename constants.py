import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 8000))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]

ICE_SERVERS = [
    url.strip()
    for url in os.getenv("ICE_SERVERS", "stun:stun.l.google.com:19302,stun:stun1.l.google.com:19302").split(",")
    if url.strip()
]

# Inbound frames above this size are dropped as malformed
MAX_FRAME_BYTES = int(os.getenv("MAX_FRAME_BYTES", 65536))

# Reserved room-relative target meaning "every other member of the room"
BROADCAST_TARGET = "broadcast"

# Frames waiting to be written to one slow client; further frames are dropped
OUTBOX_MAX_FRAMES = int(os.getenv("OUTBOX_MAX_FRAMES", 256))
