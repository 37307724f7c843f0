# Client -> server
AUTHENTICATE = "authenticate"
JOIN_ROOM = "join-room"
LEAVE_ROOM = "leave-room"
OFFER = "offer"
ANSWER = "answer"
ICE_CANDIDATE = "ice-candidate"  # room-relative or identity-relative, by roomId / callId
CALL_OFFER = "call-offer"
CALL_ANSWER = "call-answer"
CALL_END = "call-end"

# Server -> client
CONNECTED = "connected"
EXISTING_USERS = "existing-users"
USER_JOINED = "user-joined"
USER_LEFT = "user-left"

ROOM_SIGNAL_EVENTS = (OFFER, ANSWER, ICE_CANDIDATE)
CALL_SIGNAL_EVENTS = (CALL_OFFER, CALL_ANSWER, ICE_CANDIDATE)

# **Wire envelope**
# - every frame in both directions is `{"event": <name>, "data": <payload>}`
# - `existing-users` data = [connectionHandle, ...]
# - `user-joined` data = {"userIdentity": ..., "connectionHandle": ...}
# - `user-left` data = connectionHandle
# - room forwards carry {"from": connectionHandle, "payload": ..., "roomId": ...}
# - call forwards carry {"from": userIdentity, "payload": ..., "callId": ...}
