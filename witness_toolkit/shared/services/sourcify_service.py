"""
Sourcify service module for looking up verified storage layouts.

Sourcify serves the compiler's storage layout for verified contracts, which
names the slot of the balances/owners mapping directly. Lookups are
best-effort: an unverified contract simply yields no hint.
"""

import re
from typing import Any, Dict, List, Optional

import httpx

from witness_toolkit.shared.exceptions import TransportFailure
from witness_toolkit.shared.logging import get_logger
from witness_toolkit.shared.retry import HTTP_RETRY_CONFIG, RetryConfig
from witness_toolkit.shared.services.http_client import build_async_client

_logger = get_logger(__name__)

DEFAULT_SOURCIFY_URL = "https://sourcify.dev/server"
DEFAULT_TIMEOUT = 15.0

BALANCE_LABELS = ("_balances", "balances", "_balanceOf", "balanceOf")
OWNER_LABELS = ("_owners", "owners", "_ownerOf", "ownerOf")


class SourcifyService:
    """Fetch storage layouts from a Sourcify server."""

    def __init__(
        self,
        base_url: str = DEFAULT_SOURCIFY_URL,
        client: Optional[httpx.AsyncClient] = None,
        retry_config: Optional[RetryConfig] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.base_url = base_url.rstrip("/")
        self.retry_config = retry_config or HTTP_RETRY_CONFIG
        self.timeout = timeout
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = build_async_client(self.timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _get(self, url: str) -> Optional[Dict[str, Any]]:
        try:
            response = await self.client.get(url)
        except httpx.TransportError as e:
            raise TransportFailure(f"Sourcify request failed: {e}") from e

        if response.status_code == 404:
            return None
        if response.status_code == 429 or response.status_code >= 500:
            raise TransportFailure(
                f"Sourcify returned HTTP {response.status_code}"
            )
        response.raise_for_status()
        return response.json()

    async def get_storage_layout(
        self, chain_id: int, address: str
    ) -> Optional[Dict[str, Any]]:
        """
        Get the storage layout of a verified contract.

        Args:
            chain_id: Chain the contract is deployed on
            address: Contract address (the implementation, for proxies)

        Returns:
            The `storageLayout` object, or None when the contract is not
            verified or was compiled without a layout.
        """
        url = (
            f"{self.base_url}/v2/contract/{chain_id}/{address}"
            "?fields=storageLayout"
        )
        data = await self.retry_config.run(
            self._get, url, operation_name="sourcify_storage_layout"
        )
        if not data:
            return None
        return data.get("storageLayout")


def find_mapping_slots(layout: Dict[str, Any], token_kind: str) -> List[int]:
    """
    Slots of mapping entries that look like the balances/owners mapping.

    Exact well-known labels come first, then any mapping whose label
    mentions "balance" (or "owner" for ERC721).
    """
    entries = layout.get("storage") or []
    labels = OWNER_LABELS if token_kind == "ERC721" else BALANCE_LABELS
    pattern = re.compile(
        "owner" if token_kind == "ERC721" else "balance", re.IGNORECASE
    )

    exact, fuzzy = [], []
    for entry in entries:
        label = entry.get("label", "")
        type_name = entry.get("type", "")
        if not type_name.startswith("t_mapping"):
            continue
        try:
            slot = int(entry.get("slot", ""))
        except ValueError:
            continue
        if label in labels:
            exact.append(slot)
        elif pattern.search(label):
            fuzzy.append(slot)

    ordered = []
    for slot in exact + fuzzy:
        if slot not in ordered:
            ordered.append(slot)
    if ordered:
        _logger.debug(f"Sourcify layout suggests slots {ordered}")
    return ordered
