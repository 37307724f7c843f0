from fastapi import Request
from relay import SignalingRelay


def get_relay(request: Request) -> SignalingRelay:
    return request.app.state.relay
