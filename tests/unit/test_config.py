"""
Unit tests for WitnessConfig.
"""

import pytest

from witness_toolkit.shared.config import WitnessConfig
from witness_toolkit.shared.exceptions import ConfigurationException

RPC = "http://127.0.0.1:8545"


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "WITNESS_RPC_URL",
        "WITNESS_CHAIN_ID",
        "WITNESS_SLOT_SEARCH_BOUND",
        "WITNESS_CALL_TIMEOUT",
        "WITNESS_USE_SOURCIFY",
        "WITNESS_USE_BYTECODE_HINTS",
        "WITNESS_SOURCIFY_URL",
        "WITNESS_HTTP_TIMEOUT",
        "WITNESS_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestValidation:
    """Tests for construction-time checks."""

    def test_defaults(self):
        config = WitnessConfig(rpc_url=RPC)
        assert config.slot_search_bound == 10
        assert config.default_slot_for("ERC20") == 0
        assert config.default_slot_for("ERC721") == 2
        assert config.use_sourcify is False

    @pytest.mark.parametrize(
        "overrides",
        [
            {"rpc_url": ""},
            {"slot_search_bound": -1},
            {"call_timeout": 0},
            {"max_attempts": 0},
            {"probe_concurrency": 0},
            {"erc20_default_slot": -3},
            {"http_timeout": 0},
            {"log_level": "LOUD"},
        ],
    )
    def test_rejects_invalid_values(self, overrides):
        values = {"rpc_url": RPC, **overrides}
        with pytest.raises(ConfigurationException):
            WitnessConfig(**values)

    def test_with_overrides_ignores_none(self):
        config = WitnessConfig(rpc_url=RPC, slot_search_bound=5)
        updated = config.with_overrides(slot_search_bound=None, call_timeout=2.5)
        assert updated.slot_search_bound == 5
        assert updated.call_timeout == 2.5
        assert config.call_timeout == 10.0


class TestFromEnv:
    """Tests for environment-driven configuration."""

    def test_explicit_url_wins(self, clean_env):
        clean_env.setenv("WITNESS_RPC_URL", "http://other:8545")
        config = WitnessConfig.from_env(rpc_url=RPC)
        assert config.rpc_url == RPC

    def test_reads_env_values(self, clean_env):
        clean_env.setenv("WITNESS_RPC_URL", RPC)
        clean_env.setenv("WITNESS_CHAIN_ID", "31337")
        clean_env.setenv("WITNESS_SLOT_SEARCH_BOUND", "20")
        clean_env.setenv("WITNESS_CALL_TIMEOUT", "3.5")
        clean_env.setenv("WITNESS_USE_SOURCIFY", "true")
        clean_env.setenv("WITNESS_USE_BYTECODE_HINTS", "0")
        clean_env.setenv("WITNESS_HTTP_TIMEOUT", "4")
        clean_env.setenv("WITNESS_LOG_LEVEL", "debug")

        config = WitnessConfig.from_env()
        assert config.chain_id == 31337
        assert config.slot_search_bound == 20
        assert config.call_timeout == 3.5
        assert config.use_sourcify is True
        assert config.use_bytecode_hints is False
        assert config.http_timeout == 4.0
        assert config.log_level == "debug"

    def test_local_chain_fallback_url(self, clean_env):
        config = WitnessConfig.from_env(chain_id=31337)
        assert config.rpc_url

    def test_missing_url(self, clean_env):
        with pytest.raises(ConfigurationException, match="WITNESS_RPC_URL"):
            WitnessConfig.from_env()

    def test_unsupported_chain(self, clean_env):
        with pytest.raises(ConfigurationException, match="Unsupported chain"):
            WitnessConfig.from_env(chain_id=999999)

    def test_invalid_number(self, clean_env):
        clean_env.setenv("WITNESS_RPC_URL", RPC)
        clean_env.setenv("WITNESS_SLOT_SEARCH_BOUND", "ten")
        with pytest.raises(ConfigurationException, match="numeric"):
            WitnessConfig.from_env()
