#!/usr/bin/env python3
"""Shared fixtures: an in-memory chain gateway and event factory."""

import asyncio

import pytest

from pingpong_bot.exceptions import TransactionFailedError
from pingpong_bot.models import FeeSuggestion, PingEvent
from pingpong_bot.session import BotSession
from pingpong_bot.utils.checkpoint_store import CheckpointStore

CONTRACT_ADDRESS = "0x85BfE05492aFC3D04Ff3B2ca6771ACF6f853d90d"


def build_event(block_number: int, log_index: int = 0) -> PingEvent:
    """Ping event with a tx hash derived from its position."""
    return PingEvent(
        tx_hash="0x" + f"{block_number:032x}{log_index:032x}",
        block_number=block_number,
        log_index=log_index,
    )


class FakeGateway:
    """In-memory stand-in for ChainGateway.

    Holds a list of emitted events, counts nonce queries and records every
    submitted transaction. Failures can be injected per event id, and
    confirmations of events in ``held`` wait until ``release`` is set.
    """

    def __init__(self, head: int = 1000, next_nonce: int = 0) -> None:
        self.contract_address = CONTRACT_ADDRESS
        self.event_listener = None
        self.head = head
        self.events: list[PingEvent] = []
        self.next_nonce = next_nonce
        self.fee = FeeSuggestion(max_fee_per_gas=100, max_priority_fee_per_gas=10)

        self.nonce_queries = 0
        self.head_failures = 0
        self.query_failures = 0
        self.fail_submit: set[str] = set()
        self.revert: set[str] = set()
        self.held: set[str] = set()
        self.release = asyncio.Event()

        self.submitted: list[tuple[PingEvent, int, FeeSuggestion]] = []
        self._tx_events: dict[str, PingEvent] = {}
        self.handler = None
        self.subscribed = asyncio.Event()

    def emit(self, *events: PingEvent) -> None:
        self.events.extend(events)
        self.head = max([self.head] + [event.block_number for event in events])

    async def get_head_block(self) -> int:
        await asyncio.sleep(0)
        if self.head_failures:
            self.head_failures -= 1
            raise ConnectionError("RPC endpoint unreachable")
        return self.head

    async def query_events(self, from_block: int, to_block: int) -> list[PingEvent]:
        await asyncio.sleep(0)
        if self.query_failures:
            self.query_failures -= 1
            raise ConnectionError("eth_getLogs failed")
        matching = [e for e in self.events if from_block <= e.block_number <= to_block]
        return sorted(matching, key=lambda e: e.sort_key)

    async def subscribe(self, handler) -> None:
        self.handler = handler
        self.subscribed.set()
        await asyncio.Event().wait()

    async def get_fee_suggestion(self) -> FeeSuggestion:
        await asyncio.sleep(0)
        return self.fee

    async def get_next_nonce(self) -> int:
        await asyncio.sleep(0)
        self.nonce_queries += 1
        return self.next_nonce

    async def submit_transaction(self, event: PingEvent, nonce: int, fees: FeeSuggestion) -> str:
        await asyncio.sleep(0)
        if event.tx_hash in self.fail_submit:
            raise ConnectionError(f"send failed for {event.tx_hash}")
        self.submitted.append((event, nonce, fees))
        self.next_nonce = max(self.next_nonce, nonce + 1)
        tx_hash = "0x" + f"{len(self.submitted):064x}"
        self._tx_events[tx_hash] = event
        return tx_hash

    async def await_confirmation(self, tx_hash: str) -> int:
        await asyncio.sleep(0)
        event = self._tx_events[tx_hash]
        if event.tx_hash in self.held:
            await self.release.wait()
        if event.tx_hash in self.revert:
            raise TransactionFailedError(tx_hash, self.head)
        return event.block_number + 1

    @property
    def submitted_ids(self) -> list[str]:
        return [event.tx_hash for event, _, _ in self.submitted]


@pytest.fixture
def make_event():
    """Factory for Ping events."""
    return build_event


@pytest.fixture
def gateway():
    """Fresh in-memory gateway at head 1000."""
    return FakeGateway()


@pytest.fixture
def state_file(tmp_path):
    """Path of a checkpoint file inside a temp dir."""
    return tmp_path / "state.json"


@pytest.fixture
def session(gateway, state_file):
    """BotSession over the fake gateway and a temp checkpoint file."""
    return BotSession(gateway, CheckpointStore(state_file))
