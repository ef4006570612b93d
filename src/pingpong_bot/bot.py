"""
PingPong bot implementation.

This module contains the main service that restores progress, catches up on
missed Ping events, attaches the live listener and keeps reconciling on a
fixed interval, restarting the whole sequence after a failure.
"""

import asyncio
import logging

from .chain_gateway import ChainGateway
from .config import BotConfig
from .event_processor import EventProcessor
from .live_listener import LiveListener
from .reconciler import Reconciler
from .session import BotSession
from .utils.checkpoint_store import CheckpointStore
from .utils.contract_utility import ContractUtility
from .utils.event_listener_utility import EventListenerUtility
from .utils.rofl_utility import RoflUtility

logger = logging.getLogger(__name__)


class PingPongBot:
    """
    Main service that answers Ping events with Pong transactions.

    This class focuses on coordination and lifecycle management, delegating
    per-event work to the EventProcessor.
    """

    ROFL_KEY_ID = "pingpong-bot"

    def __init__(self, config: BotConfig, gateway: ChainGateway | None = None):
        """
        Initialize the PingPong bot.

        Args:
            config: Bot configuration
            gateway: Pre-built chain gateway; one is created on startup when omitted
        """
        self.config = config
        self.gateway = gateway
        self.running = False

        # Rebuilt on every initialization
        self.session: BotSession | None = None
        self.event_processor: EventProcessor | None = None
        self.reconciler: Reconciler | None = None
        self.live_listener: LiveListener | None = None
        self.from_block: int | None = None

        # Async coordination
        self.shutdown_event = asyncio.Event()

    @classmethod
    def from_env(cls, local_mode: bool = False) -> "PingPongBot":
        """
        Create a PingPongBot instance from environment variables.

        Args:
            local_mode: Sign with PRIVATE_KEY instead of a ROFL-managed key

        Returns:
            Configured PingPongBot instance

        Raises:
            ValueError: If required environment variables are missing
        """
        config = BotConfig.from_env(local_mode=local_mode)
        config.log_config()
        return cls(config)

    async def _load_secret(self) -> str:
        if self.config.local_mode:
            logger.debug("Using local private key (LOCAL MODE)")
            return self.config.private_key or ""

        logger.debug("Fetching bot key from ROFL...")
        rofl_util = RoflUtility(timeout=self.config.monitoring.request_timeout)
        return await rofl_util.fetch_key(self.ROFL_KEY_ID)

    async def _create_gateway(self) -> ChainGateway:
        """Build the chain gateway with the signing identity and WebSocket listener."""
        secret = await self._load_secret()
        contract_util = ContractUtility(rpc_url=self.config.chain.rpc_url, secret=secret)
        event_listener = EventListenerUtility(
            websocket_url=self.config.chain.websocket_url,
            request_timeout=self.config.monitoring.request_timeout
        )
        return ChainGateway(
            contract_util=contract_util,
            contract_address=self.config.chain.contract_address,
            event_listener=event_listener,
            confirmation_timeout=self.config.monitoring.confirmation_timeout
        )

    async def initialize(self) -> int:
        """
        Restore progress and catch up.

        Builds a fresh session, loads (or seeds) the checkpoint, runs one
        reconciliation pass and attaches the live listener.

        Returns:
            The watermark after the catch-up pass
        """
        if self.gateway is None:
            self.gateway = await self._create_gateway()

        checkpoint_store = CheckpointStore(
            self.config.state_file,
            max_answered=self.config.monitoring.max_answered
        )
        self.session = BotSession(
            self.gateway,
            checkpoint_store,
            max_attempts=self.config.monitoring.max_event_attempts
        )
        from_block = await self.session.restore()

        logger.info("PingPong Bot initialized")
        logger.info(f"Contract: {self.gateway.contract_address}")
        if contract_util := getattr(self.gateway, 'contract_util', None):
            logger.info(f"Bot address: {contract_util.address}")

        self.event_processor = EventProcessor(self.session)
        self.reconciler = Reconciler(self.session, self.event_processor)
        self.from_block = await self.reconciler.run(from_block)

        self.live_listener = LiveListener(self.gateway, self.event_processor)
        self.live_listener.start()
        return self.from_block

    async def _wait_for_shutdown(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; True if shutdown was requested."""
        try:
            await asyncio.wait_for(self.shutdown_event.wait(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False

    async def _until_shutdown(self, coro) -> bool:
        """
        Run ``coro`` unless shutdown is requested first.

        Returns:
            True if ``coro`` completed, False if it was cancelled by shutdown
        """
        task = asyncio.create_task(coro)
        shutdown = asyncio.create_task(self.shutdown_event.wait())
        try:
            done, _ = await asyncio.wait({task, shutdown}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            shutdown.cancel()

        if task in done:
            task.result()
            return True

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass  # Expected when cancelling
        return False

    async def _reconciliation_loop(self) -> None:
        """Run a pass every polling interval, never two at once."""
        interval = self.config.monitoring.polling_interval
        last_stats = self.event_processor.get_stats()
        while not await self._wait_for_shutdown(interval):
            self.from_block = await self.reconciler.run(self.from_block)

            stats = self.event_processor.get_stats()
            if stats != last_stats:
                live = self.live_listener.get_status() if self.live_listener else {}
                logger.info(
                    f"Status: {stats['answered']} answered, {stats['failed']} failed, "
                    f"{stats['pending']} pending, {stats['retry_queue']} awaiting retry, "
                    f"live queue {live.get('queue_depth', 0)}, "
                    f"connection {live.get('connection_state')}"
                )
                last_stats = stats

    async def _check_task_health(self, tasks: dict[str, asyncio.Task]) -> bool:
        """Check if any critical task has failed."""
        for name, task in tasks.items():
            if task.done():
                try:
                    await task
                except asyncio.CancelledError:
                    logger.error(f"{name} task was cancelled")
                except Exception as e:
                    logger.error(f"{name} task failed: {e}", exc_info=True)
                else:
                    logger.error(f"{name} task exited unexpectedly")
                return False
        return True

    async def _cleanup_tasks(self, tasks: dict[str, asyncio.Task]) -> None:
        """Clean up all tasks and listeners."""
        if self.live_listener:
            await self.live_listener.stop()
            if event_listener := getattr(self.gateway, "event_listener", None):
                await event_listener.stop()

        for task in tasks.values():
            if not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass  # Expected when cancelling

    async def run(self) -> None:
        """Main loop: initialize, monitor, and restart after failures."""
        self.running = True
        logger.info("PingPong Bot starting...")
        logger.info(f"Polling interval: {self.config.monitoring.polling_interval}s")

        while self.running:
            tasks: dict[str, asyncio.Task] = {}
            try:
                if not await self._until_shutdown(self.initialize()):
                    break

                tasks = {
                    "reconciliation": asyncio.create_task(self._reconciliation_loop()),
                    **self.live_listener.tasks,
                }
                logger.info("Event monitoring started, waiting for events...")

                # Wait until shutdown or task failure
                while self.running:
                    if await self._wait_for_shutdown(1.0):
                        break
                    if not await self._check_task_health(tasks):
                        raise RuntimeError("Critical task failure")

            except Exception as e:
                logger.error(f"Error in main loop: {e}", exc_info=True)
            finally:
                await self._cleanup_tasks(tasks)
                self.live_listener = None

            if self.running:
                retry_delay = self.config.monitoring.retry_delay
                logger.info(f"Restarting in {retry_delay}s...")
                if await self._wait_for_shutdown(retry_delay):
                    break

        if self.event_processor:
            logger.info(f"Final stats: {self.event_processor.get_stats()}")
        logger.info("PingPong Bot stopped")

    def stop(self) -> None:
        """Stop the bot service."""
        logger.info("Bot shutting down...")
        self.running = False
        self.shutdown_event.set()
