"""
Per-run state shared by the PingPong bot components.

A BotSession owns the dedup ledger, the nonce sequencer, the checkpoint
store and the set of events whose response failed. The orchestrator builds
a fresh session on every (re)initialization and hands it to each component.
"""

import logging
from typing import TYPE_CHECKING

from .models import PingEvent
from .nonce_sequencer import NonceSequencer
from .utils.checkpoint_store import CheckpointStore
from .utils.state_manager import DedupLedger

if TYPE_CHECKING:
    from .chain_gateway import ChainGateway

logger = logging.getLogger(__name__)


class BotSession:
    """Mutable state of one bot run."""

    def __init__(
        self,
        gateway: "ChainGateway",
        checkpoint_store: CheckpointStore,
        max_attempts: int = 5
    ) -> None:
        """
        Initialize the session.

        Args:
            gateway: Network boundary used by all components
            checkpoint_store: Durable progress storage
            max_attempts: Failed Pong attempts after which an event is dropped
        """
        self.gateway = gateway
        self.checkpoint_store = checkpoint_store
        self.max_attempts = max_attempts
        self.ledger = DedupLedger(max_answered=checkpoint_store.max_answered)
        self.nonce_sequencer = NonceSequencer(gateway.get_next_nonce)

        # Events whose Pong failed and still need one, keyed by event id
        self.failed_events: dict[str, PingEvent] = {}
        self.failure_counts: dict[str, int] = {}

    async def restore(self) -> int:
        """
        Load the checkpoint, or seed one at the current chain head.

        Returns:
            Block to start reconciliation from
        """
        checkpoint = self.checkpoint_store.load()
        if checkpoint is not None:
            self.ledger = DedupLedger(
                checkpoint.answered_event_ids,
                max_answered=self.checkpoint_store.max_answered
            )
            return checkpoint.last_processed_block

        head = await self.gateway.get_head_block()
        logger.info(f"Initializing from block {head}")
        return await self.checkpoint_store.save(head)

    def capped_block(self, block: int) -> int:
        """
        Hold a checkpoint height below the oldest event still owed a Pong.

        A restart then re-scans that event's block.
        """
        if not self.failed_events:
            return block
        floor = min(event.block_number for event in self.failed_events.values()) - 1
        return max(0, min(block, floor))

    async def advance_checkpoint(self, block: int) -> int:
        """
        Persist progress up to ``block``.

        Returns:
            The height actually persisted
        """
        return await self.checkpoint_store.save(self.capped_block(block))

    def record_failure(self, event: PingEvent) -> bool:
        """
        Count a failed Pong attempt for ``event``.

        Returns:
            True if the event stays owed a Pong, False once it has used up
            ``max_attempts`` and no longer holds the checkpoint back
        """
        attempts = self.failure_counts.get(event.event_id, 0) + 1
        if attempts >= self.max_attempts:
            logger.error(f"Giving up on {event} after {attempts} attempts")
            self.clear_failure(event)
            return False

        self.failure_counts[event.event_id] = attempts
        self.failed_events[event.event_id] = event
        return True

    def clear_failure(self, event: PingEvent) -> None:
        self.failed_events.pop(event.event_id, None)
        self.failure_counts.pop(event.event_id, None)
