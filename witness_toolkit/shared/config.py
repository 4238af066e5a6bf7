"""
Runtime configuration for witness generation.

Values come from explicit arguments or from the environment (a `.env` file
is loaded first). Nothing here is mutated after construction; every
operation receives its contract, holder and block explicitly.
"""

import logging
import os
from dataclasses import dataclass, replace
from typing import Optional

from dotenv import load_dotenv

from witness_toolkit.shared.constants import GlobalConstants, StorageConstants
from witness_toolkit.shared.exceptions import ConfigurationException

load_dotenv()

_ENV_PREFIX = "WITNESS_"


def _env(name: str) -> Optional[str]:
    value = os.getenv(_ENV_PREFIX + name)
    return value if value not in (None, "") else None


def _env_bool(name: str, default: bool) -> bool:
    value = _env(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class WitnessConfig:
    """Settings for one RPC endpoint."""

    rpc_url: str
    chain_id: Optional[int] = None
    slot_search_bound: int = StorageConstants.DEFAULT_SEARCH_BOUND
    call_timeout: float = 10.0
    max_attempts: int = 3
    retry_base_delay: float = 0.5
    retry_max_delay: float = 5.0
    probe_concurrency: int = 4
    erc20_default_slot: int = StorageConstants.DEFAULT_SLOTS["ERC20"]
    erc721_default_slot: int = StorageConstants.DEFAULT_SLOTS["ERC721"]
    use_bytecode_hints: bool = True
    use_sourcify: bool = False
    sourcify_url: str = "https://sourcify.dev/server"
    verify_consistency: bool = False
    http_timeout: float = 15.0
    log_level: str = "INFO"

    def __post_init__(self):
        if not self.rpc_url:
            raise ConfigurationException("RPC URL is not configured")
        if self.slot_search_bound < 0:
            raise ConfigurationException(
                f"slot_search_bound must be >= 0, got {self.slot_search_bound}"
            )
        if self.call_timeout <= 0:
            raise ConfigurationException(
                f"call_timeout must be positive, got {self.call_timeout}"
            )
        if self.max_attempts < 1:
            raise ConfigurationException(
                f"max_attempts must be >= 1, got {self.max_attempts}"
            )
        if self.probe_concurrency < 1:
            raise ConfigurationException(
                f"probe_concurrency must be >= 1, got {self.probe_concurrency}"
            )
        if self.http_timeout <= 0:
            raise ConfigurationException(
                f"http_timeout must be positive, got {self.http_timeout}"
            )
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ConfigurationException(f"Unknown log level: {self.log_level}")
        for name in ("erc20_default_slot", "erc721_default_slot"):
            if getattr(self, name) < 0:
                raise ConfigurationException(f"{name} must be >= 0")

    def default_slot_for(self, token_kind: str) -> int:
        """Default mapping slot for a token kind ("ERC20" or "ERC721")."""
        if token_kind == "ERC721":
            return self.erc721_default_slot
        return self.erc20_default_slot

    def with_overrides(self, **overrides) -> "WitnessConfig":
        """Copy with some fields replaced; None values are ignored."""
        values = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **values)

    @classmethod
    def from_env(
        cls, rpc_url: Optional[str] = None, chain_id: Optional[int] = None
    ) -> "WitnessConfig":
        """
        Build a config from WITNESS_* environment variables.

        The RPC URL is resolved from, in order: the explicit argument,
        WITNESS_RPC_URL, then the per-chain variable known to
        GlobalConstants when a chain id is given.
        """
        env_chain = _env("CHAIN_ID")
        if chain_id is None and env_chain is not None:
            chain_id = int(env_chain)

        url = rpc_url or _env("RPC_URL")
        if not url and chain_id is not None:
            try:
                url = GlobalConstants.get_rpc_url(chain_id)
            except ValueError as e:
                raise ConfigurationException(str(e)) from e
        if not url:
            raise ConfigurationException(
                "RPC URL environment variable WITNESS_RPC_URL is not set"
            )

        kwargs = {}
        int_fields = {
            "SLOT_SEARCH_BOUND": "slot_search_bound",
            "MAX_ATTEMPTS": "max_attempts",
            "PROBE_CONCURRENCY": "probe_concurrency",
            "ERC20_DEFAULT_SLOT": "erc20_default_slot",
            "ERC721_DEFAULT_SLOT": "erc721_default_slot",
        }
        float_fields = {
            "CALL_TIMEOUT": "call_timeout",
            "RETRY_BASE_DELAY": "retry_base_delay",
            "RETRY_MAX_DELAY": "retry_max_delay",
            "HTTP_TIMEOUT": "http_timeout",
        }
        try:
            for env_name, field_name in int_fields.items():
                value = _env(env_name)
                if value is not None:
                    kwargs[field_name] = int(value)
            for env_name, field_name in float_fields.items():
                value = _env(env_name)
                if value is not None:
                    kwargs[field_name] = float(value)
        except ValueError as e:
            raise ConfigurationException(
                f"Invalid numeric configuration value: {e}"
            ) from e

        sourcify_url = _env("SOURCIFY_URL")
        if sourcify_url:
            kwargs["sourcify_url"] = sourcify_url
        log_level = _env("LOG_LEVEL")
        if log_level:
            kwargs["log_level"] = log_level

        return cls(
            rpc_url=url,
            chain_id=chain_id,
            use_bytecode_hints=_env_bool("USE_BYTECODE_HINTS", True),
            use_sourcify=_env_bool("USE_SOURCIFY", False),
            verify_consistency=_env_bool("VERIFY_CONSISTENCY", False),
            **kwargs,
        )
