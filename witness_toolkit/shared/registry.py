"""
Registry of verified mapping slots for well-known token contracts.

Entries are priority hints only: every slot taken from here is still
cross-checked against the on-chain balance before it is accepted. Extra
entries can be supplied through a JSON file named by WITNESS_SLOT_REGISTRY:

    {"1": {"0xabc...": {"slot": 3, "name": "TKN", "kind": "ERC20"}}}
"""

import json
import os
from typing import Dict, Optional

from eth_utils import to_checksum_address

from witness_toolkit.shared.logging import get_logger

_logger = get_logger(__name__)


class Registry:
    """Known (chain, contract) -> mapping slot entries."""

    CHAIN_NAMES = {
        1: "ethereum",
        10: "optimism",
        137: "polygon",
        8453: "base",
        42161: "arbitrum",
        11155111: "sepolia",
    }

    VERIFIED_SLOTS = {
        1: {
            "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48": {
                "slot": 9,
                "name": "USDC",
                "kind": "ERC20",
            },
            "0xdAC17F958D2ee523a2206206994597C13D831ec7": {
                "slot": 2,
                "name": "USDT",
                "kind": "ERC20",
            },
            "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2": {
                "slot": 3,
                "name": "WETH",
                "kind": "ERC20",
            },
            "0x6B175474E89094C44Da98b954EedeAC495271d0F": {
                "slot": 2,
                "name": "DAI",
                "kind": "ERC20",
            },
        },
        42161: {
            "0xaf88d065e77c8cC2239327C5EDb3A432268e5831": {
                "slot": 9,
                "name": "USDC",
                "kind": "ERC20",
            },
        },
    }

    def __init__(self, extra_path: Optional[str] = None):
        self._slots: Dict[int, Dict[str, Dict]] = {
            chain_id: {
                to_checksum_address(address): dict(entry)
                for address, entry in entries.items()
            }
            for chain_id, entries in self.VERIFIED_SLOTS.items()
        }
        path = extra_path or os.getenv("WITNESS_SLOT_REGISTRY")
        if path:
            self._load_file(path)

    def _load_file(self, path: str):
        try:
            with open(path) as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            _logger.warning(f"Could not load slot registry {path}: {e}")
            return

        for chain_id, entries in data.items():
            chain_slots = self._slots.setdefault(int(chain_id), {})
            for address, entry in entries.items():
                chain_slots[to_checksum_address(address)] = {
                    "slot": int(entry["slot"]),
                    "name": entry.get("name", ""),
                    "kind": entry.get("kind", "ERC20"),
                }

    def get(self, chain_id: int, contract: str) -> Optional[Dict]:
        return self._slots.get(chain_id, {}).get(to_checksum_address(contract))


_registry: Optional[Registry] = None


def _get_registry() -> Registry:
    global _registry
    if _registry is None:
        _registry = Registry()
    return _registry


def get_known_slot(
    chain_id: Optional[int], contract: str, token_kind: str = "ERC20"
) -> Optional[int]:
    """Verified mapping slot for a contract, or None when unknown."""
    if chain_id is None:
        return None
    entry = _get_registry().get(chain_id, contract)
    if entry is None or entry["kind"] != token_kind:
        return None
    return entry["slot"]


def get_known_entry(chain_id: Optional[int], contract: str) -> Optional[Dict]:
    """Full registry entry (slot, name, kind) for a contract."""
    if chain_id is None:
        return None
    return _get_registry().get(chain_id, contract)


def refresh_registry():
    """Reload the registry (picks up WITNESS_SLOT_REGISTRY changes)."""
    global _registry
    _registry = Registry()


def get_supported_chains() -> Dict[int, str]:
    """Get supported chains."""
    return Registry.CHAIN_NAMES.copy()
