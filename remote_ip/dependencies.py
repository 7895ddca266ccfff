from fastapi import Request

from remote_ip.middleware import REMOTE_IP_STATE_KEY


def get_remote_ip(request: Request) -> str | None:
    """Client IP resolved by RemoteIpMiddleware, or the peer address when it is not installed."""
    remote_ip = getattr(request.state, REMOTE_IP_STATE_KEY, None)
    if remote_ip is not None:
        return remote_ip
    return request.client.host if request.client else None


def get_peer_ip(request: Request) -> str | None:
    return request.client.host if request.client else None
