"""
httpx client construction for the off-chain metadata lookups.

Node traffic goes through web3's own provider session; only the optional
storage-layout lookups use these clients. Each service owns the client it
builds and closes it with the manager.
"""

from typing import Dict, Optional

import httpx

USER_AGENT = "witness-toolkit/1.0"

# Layout lookups are a handful of requests per discovery run
MAX_CONNECTIONS = 10
CONNECT_TIMEOUT_SHARE = 0.5


def build_async_client(
    timeout: float,
    headers: Optional[Dict[str, str]] = None,
) -> httpx.AsyncClient:
    """
    Build an AsyncClient for JSON APIs.

    Args:
        timeout: Total read/write/pool timeout in seconds; connecting may
            take at most half of it
        headers: Extra headers merged over the defaults

    Returns:
        httpx.AsyncClient: A client the caller must close
    """
    merged = {"User-Agent": USER_AGENT, "Accept": "application/json"}
    merged.update(headers or {})
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout, connect=timeout * CONNECT_TIMEOUT_SHARE),
        limits=httpx.Limits(
            max_connections=MAX_CONNECTIONS,
            max_keepalive_connections=MAX_CONNECTIONS,
        ),
        headers=merged,
        follow_redirects=True,
    )
