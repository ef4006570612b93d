"""
WebSocket log subscription for a single contract event.

Keeps an ``eth_subscribe("logs")`` subscription alive across dropped
connections, handing every pushed log to an async callback.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

from web3 import AsyncWeb3, Web3
from web3.providers import WebSocketProvider
from web3.utils.subscriptions import LogsSubscription, LogsSubscriptionContext

LogCallback = Callable[[dict[str, Any]], Awaitable[Any]]


class ConnectionState(Enum):
    """Where the listener is in its connect / reconnect cycle."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    FAILED = "failed"


class EventListenerUtility:
    """
    Subscribes to one contract event over WebSocket.

    A connection error is retried with exponential back-off capped at
    ``max_delay`` seconds; ``max_retries`` bounds consecutive failures
    (unbounded when None). A subscription that ends cleanly is re-opened
    after ``base_delay`` seconds.
    """

    def __init__(
        self,
        websocket_url: str,
        max_retries: int | None = None,
        request_timeout: int = 60
    ) -> None:
        """
        Args:
            websocket_url: ws:// or wss:// RPC endpoint
            max_retries: Consecutive failed connection attempts before giving up
            request_timeout: Provider request timeout in seconds
        """
        self.websocket_url = websocket_url
        self.max_retries = max_retries
        self.request_timeout = request_timeout

        self.connection_state = ConnectionState.DISCONNECTED
        self.async_w3: AsyncWeb3 | None = None
        self.event_callback: LogCallback | None = None

        self.base_delay = 1
        self.max_delay = 60

        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    async def listen_for_contract_events(
        self,
        contract_address: str,
        event_obj: Any,
        callback: LogCallback
    ) -> None:
        """
        Deliver every ``event_obj`` log emitted by ``contract_address``.

        Runs until cancelled, or until ``max_retries`` consecutive
        connection attempts fail, in which case the last error is raised.

        Args:
            contract_address: Contract whose logs are wanted
            event_obj: Bound contract event, e.g. ``contract.events.Ping()``
            callback: Coroutine receiving each log as a plain dict
        """
        self.event_callback = callback
        subscription = LogsSubscription(
            label=f"{event_obj.event_name}-subscription",
            address=Web3.to_checksum_address(contract_address),
            topics=[event_obj.topic],
            handler=self._log_handler,
        )
        self.logger.info(f"Listening for {event_obj.event_name} events on {contract_address}")

        failures = 0
        while True:
            try:
                await self._run_subscription(subscription)
                failures = 0
                self.logger.warning("WebSocket subscription ended, reconnecting")
                delay = self.base_delay
            except asyncio.CancelledError:
                self.connection_state = ConnectionState.DISCONNECTED
                raise
            except Exception as e:
                failures += 1
                self.logger.warning(f"WebSocket connection failed (attempt {failures}): {e}")
                if not self._should_retry(failures):
                    self.logger.error("Max WebSocket retries reached")
                    self.connection_state = ConnectionState.FAILED
                    raise
                delay = self._backoff_delay(failures)
            finally:
                self.async_w3 = None

            self.connection_state = ConnectionState.RECONNECTING
            self.logger.info(f"Reconnecting in {delay}s")
            await asyncio.sleep(delay)

    async def _run_subscription(self, subscription: LogsSubscription) -> None:
        """Open a connection, subscribe and process messages until it closes."""
        self.connection_state = ConnectionState.CONNECTING
        self.logger.info(f"Connecting to WebSocket: {self.websocket_url}")

        provider = WebSocketProvider(
            self.websocket_url,
            request_timeout=self.request_timeout,
            subscription_response_queue_size=10000,
        )
        async with AsyncWeb3(provider) as w3:
            self.async_w3 = w3
            self.connection_state = ConnectionState.CONNECTED
            await w3.subscription_manager.subscribe([subscription])
            self.logger.info("WebSocket subscription active")
            await w3.subscription_manager.handle_subscriptions()

    def _should_retry(self, retry_count: int) -> bool:
        return self.max_retries is None or retry_count < self.max_retries

    def _backoff_delay(self, retry_count: int) -> int:
        return min(self.base_delay * 2 ** retry_count, self.max_delay)

    async def _log_handler(self, handler_context: LogsSubscriptionContext) -> None:
        """Forward one pushed log; a failing callback never ends the subscription."""
        if self.event_callback is None:
            return
        try:
            await self.event_callback(dict(handler_context.result))
        except Exception as e:
            self.logger.error(f"Error processing subscription event: {e}", exc_info=True)

    async def stop(self) -> None:
        """Drop the active subscription, if any."""
        w3, self.async_w3 = self.async_w3, None
        self.connection_state = ConnectionState.DISCONNECTED
        if w3 is None:
            return

        self.logger.info("Unsubscribing WebSocket listener")
        try:
            await w3.subscription_manager.unsubscribe_all()
        except Exception as e:
            self.logger.warning(f"Error during cleanup: {e}")
