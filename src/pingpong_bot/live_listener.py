"""
Live delivery of Ping events.

Pushed events are put on an asyncio queue. The consumer starts one task per
event running the same per-event routine the reconciler uses, so a Pong
waiting for its receipt never holds up the events behind it.
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from .models import PingEvent

if TYPE_CHECKING:
    from .chain_gateway import ChainGateway
    from .event_processor import EventProcessor


class LiveListener:
    """Routes subscription-delivered Ping events to the event processor."""

    def __init__(self, gateway: "ChainGateway", processor: "EventProcessor"):
        """
        Initialize the live listener.

        Args:
            gateway: Network boundary providing the subscription
            processor: Per-event routine shared with the reconciler
        """
        self.gateway = gateway
        self.processor = processor
        self.queue: asyncio.Queue[PingEvent] = asyncio.Queue()
        self.tasks: dict[str, asyncio.Task] = {}
        self._in_flight: set[asyncio.Task] = set()
        self.events_received = 0

        # Setup logging
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    async def enqueue(self, event: PingEvent) -> None:
        """Subscription handler: queue an event for processing."""
        self.events_received += 1
        self.logger.info(f"Ping event received live: {event}")
        await self.queue.put(event)

    def start(self) -> dict[str, asyncio.Task]:
        """
        Attach the subscription and start the consumer.

        Returns:
            The running tasks, keyed by name
        """
        if self.tasks:
            self.logger.warning("Live listener already running")
            return self.tasks

        self.tasks = {
            "subscription": asyncio.create_task(self.gateway.subscribe(self.enqueue)),
            "consumer": asyncio.create_task(self._consume()),
        }
        self.logger.info(f"Live listener attached to {self.gateway.contract_address}")
        return self.tasks

    async def _consume(self) -> None:
        while True:
            event = await self.queue.get()
            task = asyncio.create_task(self._handle(event))
            self._in_flight.add(task)
            task.add_done_callback(self._in_flight.discard)

    async def _handle(self, event: PingEvent) -> None:
        try:
            await self.processor.process_event(event)
        except Exception as e:
            self.logger.error(f"Error handling event: {e}")
        finally:
            self.queue.task_done()

    async def stop(self) -> None:
        """Detach the subscription, stop the consumer and abandon in-flight events."""
        self.logger.info("Stopping live listener")
        tasks = [*self.tasks.values(), *self._in_flight]
        for task in tasks:
            if not task.done():
                task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass  # Expected when cancelling
            except Exception as e:
                self.logger.warning(f"Live listener task ended with error: {e}")
        self.tasks = {}

    def get_status(self) -> dict[str, Any]:
        """
        Get current status of the live listener.

        Returns:
            Dictionary with status information
        """
        event_listener = getattr(self.gateway, "event_listener", None)
        return {
            "is_running": bool(self.tasks) and not any(t.done() for t in self.tasks.values()),
            "connection_state": event_listener.connection_state.value if event_listener else None,
            "events_received": self.events_received,
            "queue_depth": self.queue.qsize(),
            "in_flight": len(self._in_flight),
            "contract_address": self.gateway.contract_address,
        }
