#!/usr/bin/env python3
"""Chain access for the PingPong bot.

This module wraps every network interaction the bot needs: reading the
chain head, querying and subscribing to Ping logs, reading fee and nonce
data, and submitting and confirming Pong transactions.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from web3 import Web3
from web3.contract import AsyncContract
from web3.exceptions import TimeExhausted
from web3.types import TxParams, TxReceipt, Wei

from .exceptions import ConfirmationTimeoutError, TransactionFailedError
from .models import FeeSuggestion, PingEvent

if TYPE_CHECKING:
    from .utils.contract_utility import ContractUtility
    from .utils.event_listener_utility import EventListenerUtility

logger = logging.getLogger(__name__)

# Fallback tip when the node does not implement eth_maxPriorityFeePerGas
DEFAULT_PRIORITY_FEE: int = Web3.to_wei(1, 'gwei')


class ChainGateway:
    """Network boundary for the watched PingPong contract."""

    def __init__(
        self,
        contract_util: "ContractUtility",
        contract_address: str,
        event_listener: "EventListenerUtility | None" = None,
        confirmation_timeout: int = 120
    ) -> None:
        """
        Initialize the ChainGateway.

        Args:
            contract_util: Utility holding the AsyncWeb3 client and signing account
            contract_address: Address of the PingPong contract
            event_listener: WebSocket listener used for live subscriptions
            confirmation_timeout: Seconds to wait for a transaction receipt
        """
        self.contract_util = contract_util
        self.w3 = contract_util.w3
        self.contract_address: str = Web3.to_checksum_address(contract_address)
        self.contract: AsyncContract = contract_util.get_contract(self.contract_address)
        self.event_listener = event_listener
        self.confirmation_timeout = confirmation_timeout

    async def get_head_block(self) -> int:
        """Current chain height."""
        return await self.w3.eth.block_number

    async def query_events(self, from_block: int, to_block: int) -> list[PingEvent]:
        """
        Fetch Ping events in ``[from_block, to_block]``.

        Returns:
            Events sorted by block number, then log index
        """
        logs = await self.contract.events.Ping().get_logs(
            from_block=from_block,
            to_block=to_block
        )
        return sorted((PingEvent.from_log(log) for log in logs), key=lambda e: e.sort_key)

    async def subscribe(self, handler: Callable[[PingEvent], Awaitable[Any]]) -> None:
        """
        Push each newly emitted Ping to ``handler``. Runs until cancelled.

        Raises:
            RuntimeError: If no event listener was configured
        """
        if self.event_listener is None:
            raise RuntimeError("No event listener configured for live subscription")

        async def on_log(log: dict[str, Any]) -> None:
            if log.get('removed'):
                logger.debug(f"Ignoring removed log {log.get('transactionHash')}")
                return
            await handler(PingEvent.from_log(log))

        await self.event_listener.listen_for_contract_events(
            contract_address=self.contract_address,
            event_obj=self.contract.events.Ping(),
            callback=on_log
        )

    async def get_fee_suggestion(self) -> FeeSuggestion:
        """
        Suggest EIP-1559 fees from the latest block.

        ``max_fee = 2 * base_fee + priority_fee``. Chains without a base fee
        get an empty suggestion and the node's defaults apply.
        """
        latest_block = await self.w3.eth.get_block('latest')
        base_fee = latest_block.get('baseFeePerGas')
        if base_fee is None:
            return FeeSuggestion(max_fee_per_gas=None, max_priority_fee_per_gas=None)

        try:
            priority_fee = int(await self.w3.eth.max_priority_fee)
        except Exception as e:
            logger.debug(f"Priority fee suggestion unavailable, using default: {e}")
            priority_fee = DEFAULT_PRIORITY_FEE

        return FeeSuggestion(
            max_fee_per_gas=int(base_fee) * 2 + priority_fee,
            max_priority_fee_per_gas=priority_fee
        )

    async def get_next_nonce(self) -> int:
        """Pending-inclusive transaction count of the signing account."""
        return await self.w3.eth.get_transaction_count(self.contract_util.address, 'pending')

    async def submit_transaction(self, event: PingEvent, nonce: int, fees: FeeSuggestion) -> str:
        """
        Sign and send ``pong(bytes32)`` answering ``event``.

        Returns:
            Hash of the submitted transaction
        """
        tx_params: TxParams = {
            'from': self.contract_util.address,
            'nonce': nonce,
            'type': 2,
        }
        if fees.max_fee_per_gas is not None:
            tx_params['maxFeePerGas'] = Wei(fees.max_fee_per_gas)
        if fees.max_priority_fee_per_gas is not None:
            tx_params['maxPriorityFeePerGas'] = Wei(fees.max_priority_fee_per_gas)

        tx_hash = await self.contract.functions.pong(event.payload).transact(tx_params)
        return Web3.to_hex(tx_hash)

    async def await_confirmation(self, tx_hash: str) -> int:
        """
        Wait for ``tx_hash`` to be mined.

        Returns:
            Block number the transaction was included in

        Raises:
            ConfirmationTimeoutError: If no receipt arrives in time
            TransactionFailedError: If the transaction reverted
        """
        try:
            receipt: TxReceipt = await self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.confirmation_timeout
            )
        except TimeExhausted as e:
            raise ConfirmationTimeoutError(tx_hash, self.confirmation_timeout) from e

        if (status := receipt.get('status', 0)) != 1:
            logger.error(f"Transaction {tx_hash} failed with status={status}")
            raise TransactionFailedError(tx_hash, receipt.get('blockNumber'))

        return receipt['blockNumber']
