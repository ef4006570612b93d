#!/usr/bin/env python3
"""Configuration management for the PingPong bot.

This module provides type-safe configuration dataclasses with validation.
Configuration is loaded from environment variables with sensible defaults
where appropriate.
"""

import logging
import os
from dataclasses import dataclass, field
from urllib.parse import urlparse

from web3 import Web3

# Get logger for this module
logger = logging.getLogger(__name__)


def to_websocket_url(http_url: str) -> str:
    """Convert an HTTP RPC URL to its WebSocket counterpart."""
    if http_url.startswith("https://"):
        return http_url.replace("https://", "wss://", 1)
    if http_url.startswith("http://"):
        return http_url.replace("http://", "ws://", 1)
    return http_url


@dataclass(frozen=True, slots=True)
class ChainConfig:
    """Configuration for the watched chain.

    Attributes:
        rpc_url: HTTP(S) RPC endpoint used for reads and transactions
        contract_address: Checksummed address of the PingPong contract
        websocket_url: WebSocket endpoint for the live subscription
    """

    rpc_url: str
    contract_address: str
    websocket_url: str = ""

    def __post_init__(self) -> None:
        """Validate chain configuration."""
        if not self.rpc_url:
            raise ValueError("RPC URL is required (RPC_URL)")

        parsed = urlparse(self.rpc_url)
        if parsed.scheme not in ('http', 'https', 'ws', 'wss'):
            raise ValueError(
                f"Invalid RPC URL scheme: {parsed.scheme}. "
                "Expected http, https, ws, or wss"
            )

        if not self.websocket_url:
            object.__setattr__(self, 'websocket_url', to_websocket_url(self.rpc_url))
        elif urlparse(self.websocket_url).scheme not in ('ws', 'wss'):
            raise ValueError(
                f"Invalid WebSocket URL scheme: {urlparse(self.websocket_url).scheme}. "
                "Expected ws or wss"
            )

        if not self.contract_address:
            raise ValueError("Contract address is required (CONTRACT_ADDRESS)")

        if not Web3.is_address(self.contract_address):
            raise ValueError(f"Invalid contract address: {self.contract_address}")

        checksummed = Web3.to_checksum_address(self.contract_address)
        if checksummed != self.contract_address:
            # Use object.__setattr__ since dataclass is frozen
            object.__setattr__(self, 'contract_address', checksummed)


@dataclass(frozen=True, slots=True)
class MonitoringConfig:
    """Configuration for event monitoring and response submission."""
    polling_interval: int = 30  # seconds between reconciliation passes
    retry_delay: int = 10  # seconds before restarting a failed startup
    confirmation_timeout: int = 120  # seconds to wait for a Pong receipt
    request_timeout: int = 30  # HTTP request timeout in seconds
    max_answered: int = 10_000  # answered ids kept in the checkpoint
    max_event_attempts: int = 5  # Pong attempts per event before giving up

    def __post_init__(self) -> None:
        """Validate monitoring configuration."""
        if self.polling_interval <= 0:
            raise ValueError(f"Polling interval must be positive, got {self.polling_interval}")
        if self.polling_interval > 3600:
            raise ValueError(f"Polling interval too long (max 3600s), got {self.polling_interval}")

        if self.retry_delay <= 0:
            raise ValueError(f"Retry delay must be positive, got {self.retry_delay}")

        if self.confirmation_timeout <= 0:
            raise ValueError(
                f"Confirmation timeout must be positive, got {self.confirmation_timeout}"
            )

        if self.request_timeout <= 0:
            raise ValueError(f"Request timeout must be positive, got {self.request_timeout}")
        if self.request_timeout > 120:
            raise ValueError(f"Request timeout too long (max 120s), got {self.request_timeout}")

        if self.max_answered <= 0:
            raise ValueError(f"Max answered ids must be positive, got {self.max_answered}")

        if self.max_event_attempts <= 0:
            raise ValueError(
                f"Max event attempts must be positive, got {self.max_event_attempts}"
            )


@dataclass(frozen=True, slots=True)
class BotConfig:
    """Main configuration for the PingPong bot.

    Attributes:
        chain: Configuration for the watched chain
        monitoring: Configuration for monitoring and submission
        state_file: Path of the checkpoint file
        local_mode: Whether the signing key comes from PRIVATE_KEY
        private_key: Private key for local mode
    """

    chain: ChainConfig
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)
    state_file: str = "state.json"
    local_mode: bool = False
    private_key: str | None = None

    def __post_init__(self) -> None:
        """Validate bot configuration."""
        if self.local_mode and not self.private_key:
            raise ValueError("Local mode requires PRIVATE_KEY environment variable")

        if self.private_key:
            # Should be 64 hex chars, optionally with 0x prefix
            key = self.private_key.removeprefix('0x')

            if len(key) != 64:
                raise ValueError(
                    f"Invalid private key length. Expected 64 hex characters, got {len(key)}"
                )

            try:
                int(key, 16)
            except ValueError:
                raise ValueError("Invalid private key format. Must be hexadecimal") from None

        if not self.state_file:
            raise ValueError("State file path must not be empty (STATE_FILE)")

    @classmethod
    def from_env(cls, local_mode: bool = False) -> "BotConfig":
        """Load configuration from environment variables.

        ``PROVIDER`` and ``CONTRACT`` are accepted as aliases of ``RPC_URL``
        and ``CONTRACT_ADDRESS``.

        Args:
            local_mode: Whether to sign with PRIVATE_KEY instead of a ROFL key

        Returns:
            BotConfig instance with loaded values

        Raises:
            ValueError: If required environment variables are missing or invalid
        """
        rpc_url = os.environ.get("RPC_URL") or os.environ.get("PROVIDER", "")
        if not rpc_url:
            raise ValueError(
                "RPC_URL environment variable is required. "
                "Example: https://ethereum-sepolia.publicnode.com"
            )

        contract_address = os.environ.get("CONTRACT_ADDRESS") or os.environ.get("CONTRACT", "")
        if not contract_address:
            raise ValueError(
                "CONTRACT_ADDRESS environment variable is required. "
                "This is the address of the deployed PingPong contract"
            )

        chain_config = ChainConfig(
            rpc_url=rpc_url,
            contract_address=contract_address,
            websocket_url=os.environ.get("WS_RPC_URL", ""),
        )

        monitoring_config = MonitoringConfig(
            polling_interval=int(os.environ.get("POLLING_INTERVAL", "30")),
            retry_delay=int(os.environ.get("RETRY_DELAY", "10")),
            confirmation_timeout=int(os.environ.get("CONFIRMATION_TIMEOUT", "120")),
            request_timeout=int(os.environ.get("REQUEST_TIMEOUT", "30")),
            max_answered=int(os.environ.get("MAX_ANSWERED", "10000")),
            max_event_attempts=int(os.environ.get("MAX_EVENT_ATTEMPTS", "5")),
        )

        private_key = os.environ.get("PRIVATE_KEY") if local_mode else None

        return cls(
            chain=chain_config,
            monitoring=monitoring_config,
            state_file=os.environ.get("STATE_FILE", "state.json"),
            local_mode=local_mode,
            private_key=private_key,
        )

    def log_config(self) -> None:
        """Log the configuration in a readable format (hiding sensitive data)."""
        logger.info("=" * 60)
        logger.info("PingPong Bot Configuration")
        logger.info("=" * 60)

        logger.info("Chain:")
        logger.info(f"  RPC URL: {self.chain.rpc_url}")
        logger.info(f"  WebSocket URL: {self.chain.websocket_url}")
        logger.info(f"  Contract: {self.chain.contract_address}")

        logger.info("Monitoring Settings:")
        logger.info(f"  Polling Interval: {self.monitoring.polling_interval} seconds")
        logger.info(f"  Retry Delay: {self.monitoring.retry_delay} seconds")
        logger.info(f"  Confirmation Timeout: {self.monitoring.confirmation_timeout} seconds")
        logger.info(f"  Request Timeout: {self.monitoring.request_timeout} seconds")
        logger.info(f"  Max Answered Ids: {self.monitoring.max_answered}")
        logger.info(f"  Max Event Attempts: {self.monitoring.max_event_attempts}")

        logger.info("Bot Settings:")
        logger.info(f"  State File: {self.state_file}")
        logger.info(f"  Mode: {'LOCAL' if self.local_mode else 'ROFL'}")
        if self.local_mode:
            logger.info(f"  Private Key: {'[SET]' if self.private_key else '[NOT SET]'}")

        logger.info("=" * 60)
