#!/usr/bin/env python3
"""Tests for the configuration module."""

import logging

import pytest

from pingpong_bot.config import (
    BotConfig,
    ChainConfig,
    MonitoringConfig,
    to_websocket_url,
)

CONTRACT_ADDRESS = "0x85BfE05492aFC3D04Ff3B2ca6771ACF6f853d90d"
PRIVATE_KEY = "0x" + "1" * 64

ENV_VARS = (
    "RPC_URL", "PROVIDER", "WS_RPC_URL", "CONTRACT_ADDRESS", "CONTRACT",
    "PRIVATE_KEY", "POLLING_INTERVAL", "RETRY_DELAY", "CONFIRMATION_TIMEOUT",
    "REQUEST_TIMEOUT", "MAX_ANSWERED", "MAX_EVENT_ATTEMPTS", "STATE_FILE",
)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every bot variable from the environment."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def chain() -> ChainConfig:
    return ChainConfig(rpc_url="https://test.rpc", contract_address=CONTRACT_ADDRESS)


class TestChainConfig:
    """Tests for ChainConfig."""

    def test_valid_chain_config(self):
        """Test creating a valid chain configuration."""
        config = ChainConfig(
            rpc_url="https://ethereum-sepolia.publicnode.com",
            contract_address=CONTRACT_ADDRESS
        )

        assert config.contract_address == CONTRACT_ADDRESS
        assert config.websocket_url == "wss://ethereum-sepolia.publicnode.com"

    def test_checksum_address_conversion(self):
        """Test that addresses are converted to checksum format."""
        config = ChainConfig(rpc_url="https://test.rpc", contract_address=CONTRACT_ADDRESS.lower())

        assert config.contract_address == CONTRACT_ADDRESS

    def test_explicit_websocket_url(self):
        """Test an explicit WebSocket URL is kept."""
        config = ChainConfig(
            rpc_url="http://localhost:8545",
            contract_address=CONTRACT_ADDRESS,
            websocket_url="ws://localhost:8546"
        )

        assert config.websocket_url == "ws://localhost:8546"

    def test_invalid_websocket_url(self):
        """Test a non-WebSocket subscription URL is rejected."""
        with pytest.raises(ValueError, match="Invalid WebSocket URL scheme"):
            ChainConfig(
                rpc_url="http://localhost:8545",
                contract_address=CONTRACT_ADDRESS,
                websocket_url="http://localhost:8546"
            )

    def test_invalid_rpc_url_scheme(self):
        """Test that invalid RPC URL schemes are rejected."""
        with pytest.raises(ValueError, match="Invalid RPC URL scheme"):
            ChainConfig(rpc_url="ftp://invalid.scheme", contract_address=CONTRACT_ADDRESS)

    def test_missing_rpc_url(self):
        """Test that missing RPC URL raises an error."""
        with pytest.raises(ValueError, match="RPC URL is required"):
            ChainConfig(rpc_url="", contract_address=CONTRACT_ADDRESS)

    def test_invalid_contract_address(self):
        """Test that invalid contract address raises an error."""
        with pytest.raises(ValueError, match="Invalid contract address"):
            ChainConfig(rpc_url="https://test.rpc", contract_address="invalid-address")

    def test_missing_contract_address(self):
        """Test that missing contract address raises an error."""
        with pytest.raises(ValueError, match="Contract address is required"):
            ChainConfig(rpc_url="https://test.rpc", contract_address="")

    @pytest.mark.parametrize("http_url, ws_url", [
        ("https://node.example", "wss://node.example"),
        ("http://localhost:8545", "ws://localhost:8545"),
        ("wss://node.example", "wss://node.example"),
    ])
    def test_to_websocket_url(self, http_url, ws_url):
        """Test deriving the WebSocket endpoint."""
        assert to_websocket_url(http_url) == ws_url


class TestMonitoringConfig:
    """Tests for MonitoringConfig."""

    def test_defaults(self):
        """Test the default timings."""
        config = MonitoringConfig()

        assert config.polling_interval == 30
        assert config.retry_delay == 10
        assert config.confirmation_timeout == 120
        assert config.request_timeout == 30
        assert config.max_answered == 10_000
        assert config.max_event_attempts == 5

    def test_polling_interval_validation(self):
        """Test polling interval validation."""
        with pytest.raises(ValueError, match="Polling interval must be positive"):
            MonitoringConfig(polling_interval=0)

        with pytest.raises(ValueError, match="Polling interval too long"):
            MonitoringConfig(polling_interval=3601)

    @pytest.mark.parametrize("field_name", [
        "retry_delay", "confirmation_timeout", "request_timeout", "max_answered",
        "max_event_attempts",
    ])
    def test_positive_values_required(self, field_name):
        """Test non-positive values are rejected."""
        with pytest.raises(ValueError, match="must be positive"):
            MonitoringConfig(**{field_name: 0})

    def test_request_timeout_upper_bound(self):
        """Test overly long request timeouts are rejected."""
        with pytest.raises(ValueError, match="Request timeout too long"):
            MonitoringConfig(request_timeout=121)


class TestBotConfig:
    """Tests for BotConfig."""

    def test_local_mode_requires_private_key(self):
        """Test that local mode requires a private key."""
        with pytest.raises(ValueError, match="Local mode requires PRIVATE_KEY"):
            BotConfig(chain=chain(), local_mode=True)

    def test_valid_private_key(self):
        """Test keys with and without the 0x prefix."""
        assert BotConfig(chain=chain(), local_mode=True, private_key=PRIVATE_KEY).local_mode
        assert BotConfig(chain=chain(), local_mode=True, private_key="2" * 64).local_mode

    def test_invalid_private_key_length(self):
        """Test a short key is rejected."""
        with pytest.raises(ValueError, match="Invalid private key length"):
            BotConfig(chain=chain(), local_mode=True, private_key="0x1234")

    def test_invalid_private_key_format(self):
        """Test a non-hex key is rejected."""
        with pytest.raises(ValueError, match="Invalid private key format"):
            BotConfig(chain=chain(), local_mode=True, private_key="0x" + "g" * 64)

    def test_empty_state_file(self):
        """Test an empty checkpoint path is rejected."""
        with pytest.raises(ValueError, match="State file path must not be empty"):
            BotConfig(chain=chain(), state_file="")


class TestFromEnv:
    """Tests for loading configuration from the environment."""

    def test_minimal_environment(self, clean_env):
        """Test the defaults with only the required variables set."""
        clean_env.setenv("RPC_URL", "https://ethereum-sepolia.publicnode.com")
        clean_env.setenv("CONTRACT_ADDRESS", CONTRACT_ADDRESS)

        config = BotConfig.from_env()

        assert config.chain.rpc_url == "https://ethereum-sepolia.publicnode.com"
        assert config.chain.websocket_url == "wss://ethereum-sepolia.publicnode.com"
        assert config.monitoring == MonitoringConfig()
        assert config.state_file == "state.json"
        assert config.local_mode is False
        assert config.private_key is None

    def test_aliases(self, clean_env):
        """Test PROVIDER and CONTRACT are accepted."""
        clean_env.setenv("PROVIDER", "http://localhost:8545")
        clean_env.setenv("CONTRACT", CONTRACT_ADDRESS.lower())

        config = BotConfig.from_env()

        assert config.chain.rpc_url == "http://localhost:8545"
        assert config.chain.contract_address == CONTRACT_ADDRESS

    def test_all_variables(self, clean_env):
        """Test every supported variable is honoured."""
        clean_env.setenv("RPC_URL", "http://localhost:8545")
        clean_env.setenv("WS_RPC_URL", "ws://localhost:8546")
        clean_env.setenv("CONTRACT_ADDRESS", CONTRACT_ADDRESS)
        clean_env.setenv("PRIVATE_KEY", PRIVATE_KEY)
        clean_env.setenv("POLLING_INTERVAL", "5")
        clean_env.setenv("RETRY_DELAY", "2")
        clean_env.setenv("CONFIRMATION_TIMEOUT", "60")
        clean_env.setenv("REQUEST_TIMEOUT", "15")
        clean_env.setenv("MAX_ANSWERED", "100")
        clean_env.setenv("MAX_EVENT_ATTEMPTS", "3")
        clean_env.setenv("STATE_FILE", "/data/state.json")

        config = BotConfig.from_env(local_mode=True)

        assert config.chain.websocket_url == "ws://localhost:8546"
        assert config.monitoring == MonitoringConfig(
            polling_interval=5,
            retry_delay=2,
            confirmation_timeout=60,
            request_timeout=15,
            max_answered=100,
            max_event_attempts=3,
        )
        assert config.state_file == "/data/state.json"
        assert config.private_key == PRIVATE_KEY

    def test_private_key_ignored_outside_local_mode(self, clean_env):
        """Test PRIVATE_KEY is only read in local mode."""
        clean_env.setenv("RPC_URL", "http://localhost:8545")
        clean_env.setenv("CONTRACT_ADDRESS", CONTRACT_ADDRESS)
        clean_env.setenv("PRIVATE_KEY", PRIVATE_KEY)

        assert BotConfig.from_env().private_key is None

    def test_missing_rpc_url(self, clean_env):
        """Test a missing RPC URL is reported."""
        clean_env.setenv("CONTRACT_ADDRESS", CONTRACT_ADDRESS)

        with pytest.raises(ValueError, match="RPC_URL environment variable is required"):
            BotConfig.from_env()

    def test_missing_contract_address(self, clean_env):
        """Test a missing contract address is reported."""
        clean_env.setenv("RPC_URL", "http://localhost:8545")

        with pytest.raises(ValueError, match="CONTRACT_ADDRESS environment variable is required"):
            BotConfig.from_env()

    def test_log_config_hides_private_key(self, clean_env, caplog):
        """Test the configuration dump never prints the key."""
        clean_env.setenv("RPC_URL", "http://localhost:8545")
        clean_env.setenv("CONTRACT_ADDRESS", CONTRACT_ADDRESS)
        clean_env.setenv("PRIVATE_KEY", PRIVATE_KEY)
        config = BotConfig.from_env(local_mode=True)

        with caplog.at_level(logging.INFO, logger="pingpong_bot.config"):
            config.log_config()

        assert "Private Key: [SET]" in caplog.text
        assert PRIVATE_KEY not in caplog.text
