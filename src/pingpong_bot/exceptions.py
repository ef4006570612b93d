"""Exceptions raised by the PingPong bot."""


class PingPongError(Exception):
    """Base class for bot errors."""


class TransactionFailedError(PingPongError):
    """A Pong transaction was mined but reverted."""

    def __init__(self, tx_hash: str, block_number: int | None = None) -> None:
        self.tx_hash = tx_hash
        self.block_number = block_number
        super().__init__(f"Transaction {tx_hash} reverted in block {block_number}")


class ConfirmationTimeoutError(PingPongError):
    """No receipt was seen for a Pong transaction within the timeout."""

    def __init__(self, tx_hash: str, timeout: float) -> None:
        self.tx_hash = tx_hash
        self.timeout = timeout
        super().__init__(f"Transaction {tx_hash} not confirmed within {timeout}s")
