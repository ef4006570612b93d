#!/usr/bin/env python3
"""Data models for the PingPong bot.

This module provides the immutable records passed between the bot's
components: observed Ping events, the durable checkpoint, fee suggestions
and the per-event response state.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from web3 import Web3


def _read(log: Any, key: str, default: Any = None) -> Any:
    """Read a field from a log that may be a dict, AttributeDict or object."""
    if hasattr(log, 'get') and callable(log.get):
        return log.get(key, default)
    return getattr(log, key, default)


def _as_int(value: Any) -> int:
    """Coerce an RPC quantity (int, hex string or bytes) to int."""
    match value:
        case None:
            return 0
        case bool():
            raise ValueError(f"Unexpected boolean quantity: {value}")
        case int():
            return value
        case bytes():
            return int.from_bytes(value, byteorder='big')
        case str() if value.startswith('0x'):
            return int(value, 16)
        case str():
            return int(value)
        case _:
            raise ValueError(f"Unexpected quantity type: {type(value).__name__}")


def normalize_tx_hash(tx_hash: Any) -> str:
    """Return a transaction hash as a lowercase 0x-prefixed hex string."""
    match tx_hash:
        case bytes() as tx_hash_bytes:
            return Web3.to_hex(tx_hash_bytes)
        case str() as tx_hash_str:
            tx_hash_str = tx_hash_str.lower()
            return tx_hash_str if tx_hash_str.startswith('0x') else '0x' + tx_hash_str
        case _:
            raise ValueError(f"Unexpected transaction hash type: {type(tx_hash).__name__}")


@dataclass(frozen=True, slots=True)
class PingEvent:
    """Represents a Ping event emitted by the watched contract.

    Attributes:
        tx_hash: Hash of the transaction that emitted the event (the event id)
        block_number: Block number where the event was emitted
        log_index: Position of the log within its block
    """

    tx_hash: str
    block_number: int
    log_index: int = 0

    @classmethod
    def from_log(cls, log: Any) -> "PingEvent":
        """Build a PingEvent from a log entry.

        Handles both the dict format delivered by WebSocket subscriptions and
        the EventData/AttributeDict format returned by ``get_logs``.

        Raises:
            ValueError: If the log carries no transaction hash
        """
        raw_hash = _read(log, 'transactionHash')
        if raw_hash is None:
            raise ValueError("Log is missing transactionHash")

        return cls(
            tx_hash=normalize_tx_hash(raw_hash),
            block_number=_as_int(_read(log, 'blockNumber')),
            log_index=_as_int(_read(log, 'logIndex')),
        )

    @property
    def event_id(self) -> str:
        """Deduplication key for this event."""
        return self.tx_hash

    @property
    def sort_key(self) -> tuple[int, int]:
        """Emission order: block first, then log position."""
        return (self.block_number, self.log_index)

    @property
    def payload(self) -> bytes:
        """The event id left-padded to 32 bytes for ``pong(bytes32)``."""
        return Web3.to_bytes(hexstr=self.tx_hash).rjust(32, b'\x00')

    def __str__(self) -> str:
        return (
            f"PingEvent(tx={self.tx_hash[:10]}..., "
            f"block={self.block_number}, log={self.log_index})"
        )


@dataclass(slots=True)
class Checkpoint:
    """Durable progress marker.

    Attributes:
        last_processed_block: Last block whose events were fully handled
        answered_event_ids: Event ids already answered, oldest first
    """

    last_processed_block: int
    answered_event_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the on-disk JSON layout."""
        return {
            "lastProcessedBlock": self.last_processed_block,
            "processedTxHashes": list(self.answered_event_ids),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Checkpoint":
        """Parse the on-disk JSON layout.

        Raises:
            ValueError: If the record is malformed
        """
        if not isinstance(data, dict):
            raise ValueError("Checkpoint must be a JSON object")

        block = data.get("lastProcessedBlock")
        if isinstance(block, bool) or not isinstance(block, int) or block < 0:
            raise ValueError(f"Invalid lastProcessedBlock: {block!r}")

        hashes = data.get("processedTxHashes") or []
        if not isinstance(hashes, list) or not all(isinstance(h, str) for h in hashes):
            raise ValueError("processedTxHashes must be a list of strings")

        # Drop duplicates, keep first-seen order
        unique = list(dict.fromkeys(normalize_tx_hash(h) for h in hashes))
        return cls(last_processed_block=block, answered_event_ids=unique)


@dataclass(frozen=True, slots=True)
class FeeSuggestion:
    """EIP-1559 fee suggestion in wei. ``None`` when the chain has no value."""

    max_fee_per_gas: int | None
    max_priority_fee_per_gas: int | None

    def with_markup(self, numerator: int = 12, denominator: int = 10) -> "FeeSuggestion":
        """Scale both components by ``numerator / denominator`` (integer math)."""
        return FeeSuggestion(
            max_fee_per_gas=(
                self.max_fee_per_gas * numerator // denominator
                if self.max_fee_per_gas is not None else None
            ),
            max_priority_fee_per_gas=(
                self.max_priority_fee_per_gas * numerator // denominator
                if self.max_priority_fee_per_gas is not None else None
            ),
        )


class ResponseState(Enum):
    """Lifecycle of the response owed for one event."""
    NEW = "new"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass(slots=True)
class InFlightResponse:
    """Ephemeral record of a response between submission and outcome."""

    event: PingEvent
    nonce: int | None = None
    state: ResponseState = ResponseState.NEW
    tx_hash: str | None = None
    confirmed_block: int | None = None
