#!/usr/bin/env python3
"""Pong submission for the PingPong bot.

This module builds, sends and confirms the Pong transaction answering one
Ping event.
"""

import logging
from typing import TYPE_CHECKING

from web3 import Web3

from .models import InFlightResponse, ResponseState

if TYPE_CHECKING:
    from .chain_gateway import ChainGateway
    from .nonce_sequencer import NonceSequencer

logger = logging.getLogger(__name__)


class ResponseSubmitter:
    """Sends the Pong transaction for a single event and waits for inclusion."""

    # Fee bid = suggestion * 12 / 10 on both EIP-1559 components
    FEE_MARKUP_NUMERATOR: int = 12
    FEE_MARKUP_DENOMINATOR: int = 10

    def __init__(self, gateway: "ChainGateway", nonce_sequencer: "NonceSequencer") -> None:
        """
        Initialize the ResponseSubmitter.

        Args:
            gateway: Network boundary used to send and confirm transactions
            nonce_sequencer: Source of transaction nonces
        """
        self.gateway = gateway
        self.nonce_sequencer = nonce_sequencer

    async def submit(self, response: InFlightResponse) -> int:
        """
        Send and confirm the Pong for ``response.event``.

        The response record is updated in place as the submission progresses.
        Any error propagates; rolling back the event is the caller's job.

        Args:
            response: In-flight record of the event being answered

        Returns:
            Block number the Pong was included in
        """
        event = response.event
        response.state = ResponseState.PENDING
        logger.info(f"Sending Pong response with hash: {Web3.to_hex(event.payload)}")

        response.nonce = await self.nonce_sequencer.next()

        suggestion = await self.gateway.get_fee_suggestion()
        fees = suggestion.with_markup(self.FEE_MARKUP_NUMERATOR, self.FEE_MARKUP_DENOMINATOR)
        logger.debug(
            f"Fee bid for nonce {response.nonce}: maxFee={fees.max_fee_per_gas} "
            f"maxPriorityFee={fees.max_priority_fee_per_gas}"
        )

        response.tx_hash = await self.gateway.submit_transaction(event, response.nonce, fees)
        logger.info(f"Pong transaction sent: {response.tx_hash} with nonce {response.nonce}")

        response.confirmed_block = await self.gateway.await_confirmation(response.tx_hash)
        response.state = ResponseState.CONFIRMED
        logger.info(f"Pong confirmed in block {response.confirmed_block}")

        return response.confirmed_block
