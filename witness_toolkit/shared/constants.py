"""All constants for the project"""

import os

from dotenv import load_dotenv

load_dotenv()


class StorageConstants:
    """Storage layout conventions"""

    # EIP-1967: bytes32(uint256(keccak256("eip1967.proxy.implementation")) - 1)
    EIP1967_IMPLEMENTATION_SLOT = (
        "0x360894a13ba1a3210667c828492db98dca3e2076cc3735a920a3ca505d382bbc"
    )

    # Declared-order index of the balances/owners mapping in the most common
    # layouts (OpenZeppelin ERC20 `_balances`, ERC721 `_owners`)
    DEFAULT_SLOTS = {
        "ERC20": 0,
        "ERC721": 2,
    }

    # Candidates 0..DEFAULT_SEARCH_BOUND inclusive
    DEFAULT_SEARCH_BOUND = 10

    # Bytecode hint window: PUSH operands outside this range are ignored
    MAX_HINT_SLOT = 255

    WORD_SIZE = 32
    ADDRESS_SIZE = 20


class SelectorConstants:
    """4-byte function selectors used for ground-truth reads"""

    BALANCE_OF = "0x70a08231"  # balanceOf(address)
    OWNER_OF = "0x6352211e"  # ownerOf(uint256)
    TOTAL_SUPPLY = "0x18160ddd"  # totalSupply()


class GlobalConstants:
    """Global class constants for the project"""

    CHAIN_ID_TO_RPC = {
        1: os.getenv("ETHEREUM_MAINNET_RPC_URL") or None,
        10: os.getenv("OPTIMISM_MAINNET_RPC_URL") or None,
        42161: os.getenv("ARBITRUM_MAINNET_RPC_URL") or None,
        8453: os.getenv("BASE_MAINNET_RPC_URL") or None,
        137: os.getenv("POLYGON_MAINNET_RPC_URL") or None,
        11155111: os.getenv("SEPOLIA_RPC_URL") or None,
        31337: os.getenv("LOCAL_RPC_URL") or "http://127.0.0.1:8545",
    }

    # Share of total supply above which a discovered balance is suspicious
    SUSPICIOUS_SUPPLY_RATIO_PERCENT = 50

    @staticmethod
    def get_rpc_url(chain_id: int) -> str:
        """Get RPC URL for specified chain"""

        if chain_id not in GlobalConstants.CHAIN_ID_TO_RPC:
            raise ValueError(f"Unsupported chain ID: {chain_id}")

        rpc_url = GlobalConstants.CHAIN_ID_TO_RPC[chain_id]
        if not rpc_url:
            raise ValueError(f"RPC URL not set for chain {chain_id}")

        return rpc_url
