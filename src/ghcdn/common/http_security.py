"""Access control for the edge's operational endpoints."""

from __future__ import annotations

import hmac
from ipaddress import ip_address
from typing import Optional

from fastapi import HTTPException, Request, status

# ASGI test transports report a hostname instead of an address.
LOCAL_CLIENT_NAMES = frozenset({"localhost", "testclient"})


def is_local_client(host: Optional[str]) -> bool:
    if not host:
        return False
    try:
        return ip_address(host).is_loopback
    except ValueError:
        return host in LOCAL_CLIENT_NAMES


class MetricsGuard:
    """Dependency protecting ``/_edge/metrics``.

    With a token configured every caller must present it as a bearer
    credential. Without one, only clients on the loopback interface may scrape.
    """

    def __init__(self, token: Optional[str]) -> None:
        self._expected = f"Bearer {token}" if token else None

    def __call__(self, request: Request) -> None:
        if self._expected is not None:
            presented = request.headers.get("authorization", "")
            if not hmac.compare_digest(presented.encode(), self._expected.encode()):
                raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid metrics token")
            return
        client_host = request.client.host if request.client else None
        if not is_local_client(client_host):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Metrics restricted to loopback clients")
