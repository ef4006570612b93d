"""
Durable checkpoint storage for the PingPong bot.

The checkpoint is a single JSON file holding the last processed block and
the ids of already answered events. Every update rewrites the whole file
through a temporary sibling and ``os.replace`` so a crash leaves either the
previous or the new complete state on disk.
"""

import asyncio
import json
import logging
import os
from collections import OrderedDict
from pathlib import Path

from ..models import Checkpoint, normalize_tx_hash


class CheckpointStore:
    """
    Owns the persisted Checkpoint.

    The stored block height never decreases: saving a lower height keeps the
    current one. Answered ids are bounded, the oldest are evicted first.
    """

    def __init__(self, path: str | os.PathLike, max_answered: int = 10_000):
        """
        Initialize the checkpoint store.

        Args:
            path: Location of the checkpoint file
            max_answered: Maximum number of answered event ids to retain
        """
        self.path = Path(path)
        self.max_answered = max_answered

        self._last_processed_block: int | None = None
        self._answered: OrderedDict[str, None] = OrderedDict()
        self._write_lock = asyncio.Lock()

        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @property
    def last_processed_block(self) -> int | None:
        """Height of the last saved checkpoint, None before load/seed."""
        return self._last_processed_block

    @property
    def answered_event_ids(self) -> list[str]:
        """Answered event ids, oldest first."""
        return list(self._answered)

    def load(self) -> Checkpoint | None:
        """
        Restore the checkpoint from disk.

        Returns:
            The stored Checkpoint, or None when the file is missing or
            malformed. Never raises for a bad file.
        """
        if not self.path.exists():
            self.logger.info(f"No checkpoint file at {self.path}")
            return None

        try:
            with self.path.open(encoding='utf-8') as file:
                checkpoint = Checkpoint.from_dict(json.load(file))
        except (OSError, ValueError) as e:
            # json.JSONDecodeError is a ValueError
            self.logger.error(f"Failed to load checkpoint from {self.path}: {e}")
            return None

        self._last_processed_block = checkpoint.last_processed_block
        self._answered = OrderedDict.fromkeys(checkpoint.answered_event_ids)
        self._evict_oldest()

        self.logger.info(
            f"Loading state from block {checkpoint.last_processed_block} "
            f"({len(self._answered)} answered events)"
        )
        return self.snapshot()

    def snapshot(self) -> Checkpoint:
        """Current in-memory checkpoint."""
        return Checkpoint(
            last_processed_block=self._last_processed_block or 0,
            answered_event_ids=list(self._answered),
        )

    async def save(self, block: int) -> int:
        """
        Persist the full state with the given block height.

        Args:
            block: Block height to record

        Returns:
            The height actually persisted (never lower than before)

        Raises:
            OSError: If the file cannot be written
        """
        if block < 0:
            raise ValueError(f"Block height must be non-negative, got {block}")

        async with self._write_lock:
            current = self._last_processed_block
            if current is not None and block < current:
                self.logger.debug(f"Keeping checkpoint at {current} (requested {block})")
                block = current

            self._last_processed_block = block
            data = self.snapshot().to_dict()
            await asyncio.to_thread(self._write_atomic, data)

        self.logger.info(f"State updated: Block {block}")
        return block

    async def record_answered(self, event_id: str, block: int) -> int:
        """
        Mark an event as answered and persist the checkpoint.

        Args:
            event_id: Id of the answered event
            block: Block height to record alongside it

        Returns:
            The height actually persisted
        """
        event_id = normalize_tx_hash(event_id)
        if event_id in self._answered:
            self._answered.move_to_end(event_id)
        else:
            self._answered[event_id] = None
        self._evict_oldest()
        return await self.save(block)

    def _evict_oldest(self) -> None:
        while len(self._answered) > self.max_answered:
            self._answered.popitem(last=False)

    def _write_atomic(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")

        with tmp_path.open('w', encoding='utf-8') as file:
            json.dump(data, file, indent=2)
            file.flush()
            os.fsync(file.fileno())

        os.replace(tmp_path, self.path)
