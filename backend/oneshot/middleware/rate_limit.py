from slowapi import Limiter
from starlette.requests import Request


def client_address(request: Request) -> str:
    """Rate limit key: the originating client address.

    Behind a reverse proxy the first X-Forwarded-For entry is the client.
    Direct connections fall back to the socket peer.
    """
    forwarded_for = request.headers.get("X-Forwarded-For", "")
    first_hop = forwarded_for.split(",")[0].strip()
    if first_hop:
        return first_hop
    if request.client:
        return request.client.host
    return "unknown"


limiter = Limiter(key_func=client_address)
