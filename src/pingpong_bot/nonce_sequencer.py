"""Local nonce assignment for outgoing Pong transactions."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class NonceSequencer:
    """Hands out contiguous nonces for the signing account.

    The first call (and the first call after ``reset``) asks the chain for
    the account's next nonce; later calls increment a local cursor without a
    round trip. The fetch is serialized so concurrent callers never receive
    the same value.
    """

    def __init__(self, fetch_nonce: Callable[[], Awaitable[int]]) -> None:
        """
        Args:
            fetch_nonce: Coroutine function returning the on-chain next nonce
        """
        self._fetch_nonce = fetch_nonce
        self._cursor: int | None = None
        self._lock = asyncio.Lock()
        self.fetch_count = 0

    @property
    def cursor(self) -> int | None:
        """Next nonce to hand out, None when unset."""
        return self._cursor

    async def next(self) -> int:
        """Return the nonce for the next transaction."""
        async with self._lock:
            if self._cursor is None:
                self._cursor = await self._fetch_nonce()
                self.fetch_count += 1
                logger.debug(f"Fetched nonce {self._cursor} from chain")
            nonce = self._cursor
            self._cursor += 1
            return nonce

    def reset(self) -> None:
        """Invalidate the cursor; the next call re-queries the chain."""
        if self._cursor is not None:
            logger.info(f"Resetting nonce cursor (was {self._cursor})")
        self._cursor = None
