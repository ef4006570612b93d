"""
In-memory state tracking for the PingPong bot.

This module provides the deduplication ledger guarding against answering
the same Ping twice.
"""

from collections import OrderedDict
from collections.abc import Iterable


class DedupLedger:
    """
    Tracks event ids that are answered or currently being answered.

    An id is marked the moment processing starts, before any network call,
    so the live and reconciliation paths can never both submit for it.
    Nothing here is persisted: on startup the ledger is seeded from the
    checkpoint's answered ids. At most ``max_answered`` answered ids are
    kept, the oldest are evicted first.
    """

    def __init__(self, answered: Iterable[str] = (), max_answered: int = 10_000):
        """
        Initialize the ledger.

        Args:
            answered: Event ids already answered in a previous run
            max_answered: Maximum number of answered ids to retain
        """
        self.max_answered = max_answered
        self._answered: OrderedDict[str, None] = OrderedDict.fromkeys(answered)
        self._pending: set[str] = set()
        self._evict_oldest()

    def has(self, event_id: str) -> bool:
        """
        Check if an event id is answered or in flight.

        Args:
            event_id: Event id to check

        Returns:
            True if the event must not be processed again
        """
        return event_id in self._pending or event_id in self._answered

    def mark_pending(self, event_id: str) -> None:
        self._pending.add(event_id)

    def claim(self, event_id: str) -> bool:
        """
        Check-and-mark in one step.

        Must stay free of awaits so no other coroutine can run between the
        check and the mark.

        Returns:
            True if the caller now owns the event, False if already known
        """
        if self.has(event_id):
            return False
        self.mark_pending(event_id)
        return True

    def mark_answered(self, event_id: str) -> None:
        """Move an in-flight id to the answered set."""
        self._pending.discard(event_id)
        self._answered[event_id] = None
        self._answered.move_to_end(event_id)
        self._evict_oldest()

    def unmark(self, event_id: str) -> None:
        """Forget an id so a later scan can retry it."""
        self._pending.discard(event_id)
        self._answered.pop(event_id, None)

    def _evict_oldest(self) -> None:
        while len(self._answered) > self.max_answered:
            self._answered.popitem(last=False)

    def get_stats(self) -> dict:
        """
        Get current ledger statistics.

        Returns:
            Dictionary with ledger sizes
        """
        return {
            'answered': len(self._answered),
            'pending': len(self._pending),
        }
