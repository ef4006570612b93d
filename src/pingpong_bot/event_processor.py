"""
Event processor for handling Ping events.

Both ingestion paths (live subscription and reconciliation) hand every
event to ``EventProcessor.process_event``, the single place where the dedup
ledger is consulted and a response is started, confirmed or rolled back.
"""

import logging
from typing import TYPE_CHECKING

from .models import InFlightResponse, PingEvent, ResponseState
from .response_submitter import ResponseSubmitter

if TYPE_CHECKING:
    from .session import BotSession

logger = logging.getLogger(__name__)


class EventProcessor:
    """Processes Ping events for the PingPong bot."""

    def __init__(self, session: "BotSession", submitter: ResponseSubmitter | None = None) -> None:
        """Initialize the event processor.

        Args:
            session: Shared per-run state (ledger, nonce sequencer, checkpoint)
            submitter: Pong submitter; built from the session when omitted
        """
        self.session = session
        self.submitter = submitter or ResponseSubmitter(session.gateway, session.nonce_sequencer)

        # Metrics tracking
        self.events_answered = 0
        self.events_failed = 0
        self.events_duplicated = 0

    async def process_event(self, event: PingEvent) -> InFlightResponse | None:
        """
        Answer a Ping event unless it is already answered or in flight.

        Args:
            event: The Ping event to answer

        Returns:
            The confirmed response, or None if the event was a duplicate

        Raises:
            Exception: Whatever made the submission fail, after the event
                has been released for a later retry, or dropped once it has
                used up its attempts
        """
        event_id = event.event_id

        # Check and mark with no await in between
        if not self.session.ledger.claim(event_id):
            self.events_duplicated += 1
            logger.debug(f"Skipping already handled {event}")
            return None

        response = InFlightResponse(event=event)

        try:
            await self.submitter.submit(response)
        except Exception as e:
            response.state = ResponseState.FAILED
            self.session.nonce_sequencer.reset()
            if self.session.record_failure(event):
                self.session.ledger.unmark(event_id)
            else:
                # Dropped for this run; later scans skip it
                self.session.ledger.mark_answered(event_id)
            self.events_failed += 1
            logger.error(f"Event processing failed at block {event.block_number}: {e}")
            raise

        self.session.ledger.mark_answered(event_id)
        self.session.clear_failure(event)
        self.events_answered += 1

        try:
            await self.session.checkpoint_store.record_answered(
                event_id, self.session.capped_block(event.block_number)
            )
        except OSError as e:
            # The Pong is on chain; the answered id is kept in memory and
            # written with the next successful save.
            logger.error(f"Failed to persist checkpoint for {event}: {e}")

        return response

    def get_stats(self) -> dict:
        """
        Get current processor statistics.

        Returns:
            Dictionary with current state metrics
        """
        return {
            'answered': self.events_answered,
            'failed': self.events_failed,
            'duplicates': self.events_duplicated,
            'pending': self.session.ledger.get_stats()['pending'],
            'retry_queue': len(self.session.failed_events),
        }
