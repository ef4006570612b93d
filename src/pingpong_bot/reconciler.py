"""
Reconciliation passes over historical blocks.

Each pass re-scans ``[from_block, head]`` for Ping events the live
subscription may have missed, answers them in emission order and moves the
checkpoint forward.
"""

import logging
from typing import TYPE_CHECKING

from .models import PingEvent

if TYPE_CHECKING:
    from .event_processor import EventProcessor
    from .session import BotSession


class Reconciler:
    """Catches up on Ping events by scanning block ranges."""

    def __init__(self, session: "BotSession", processor: "EventProcessor"):
        """
        Initialize the reconciler.

        Args:
            session: Shared per-run state
            processor: Per-event routine shared with the live listener
        """
        self.session = session
        self.processor = processor
        self.passes = 0

        # Setup logging
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    async def run(self, from_block: int) -> int:
        """
        Run one reconciliation pass.

        Args:
            from_block: First block to scan (inclusive)

        Returns:
            The new watermark; ``from_block`` if the pass could not complete
        """
        gateway = self.session.gateway
        self.passes += 1

        try:
            current_block = await gateway.get_head_block()

            if current_block < from_block:
                self.logger.debug(f"Head {current_block} is behind watermark {from_block}")
                return from_block

            self.logger.info(f"Scanning blocks {from_block} to {current_block} for missed events")
            events = await gateway.query_events(from_block, current_block)

        except Exception as e:
            self.logger.error(f"Error in reconciliation pass: {e}")
            return from_block

        candidates = self._merge_retries(events)
        if candidates:
            self.logger.info(
                f"Found {len(events)} Ping events in blocks {from_block}-{current_block}"
                f" ({len(candidates) - len(events)} retries)"
            )

        for event in candidates:
            try:
                await self.processor.process_event(event)
            except Exception as e:
                self.logger.error(f"Error handling event at block {event.block_number}: {e}")

        if current_block > from_block:
            try:
                return await self.session.advance_checkpoint(current_block)
            except OSError as e:
                self.logger.error(f"Failed to save checkpoint at block {current_block}: {e}")

        return from_block

    def _merge_retries(self, events: list[PingEvent]) -> list[PingEvent]:
        """Scanned events plus earlier failures, in (block, log index) order."""
        merged = {event.event_id: event for event in self.session.failed_events.values()}
        merged.update((event.event_id, event) for event in events)
        return sorted(merged.values(), key=lambda event: event.sort_key)
