"""AsyncWeb3 client construction, transaction signing and ABI loading."""

import json
from pathlib import Path
from typing import Any

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3, Web3
from web3.contract import AsyncContract
from web3.middleware import SignAndSendRawMiddlewareBuilder

CONTRACTS_DIR = Path(__file__).resolve().parent.parent / "contracts"


class ContractUtility:
    """
    Owns the HTTP AsyncWeb3 client used for reads and Pong transactions.

    Given a secret, ``transact`` calls are signed locally with that key and
    sent with ``eth_sendRawTransaction``. Without one the client is
    read-only and has no ``address``.
    """

    def __init__(self, rpc_url: str, secret: str = "") -> None:
        """
        Args:
            rpc_url: HTTP(S) RPC endpoint
            secret: Hex private key of the bot account; empty for read-only use
        """
        if not rpc_url:
            raise ValueError("RPC URL is required")

        self.rpc_url = rpc_url
        self.w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))
        self.account: LocalAccount | None = None

        if secret:
            self._add_signing_middleware(secret)

    def _add_signing_middleware(self, secret: str) -> None:
        """Sign outgoing transactions for the account behind ``secret``."""
        account: LocalAccount = Account.from_key(secret)
        self.w3.middleware_onion.add(SignAndSendRawMiddlewareBuilder.build(account))
        self.w3.eth.default_account = account.address
        self.account = account

    @property
    def address(self) -> str:
        """Address of the signing account."""
        if self.account is None:
            raise RuntimeError("ContractUtility has no signing account (read-only mode)")
        return self.account.address

    def get_contract(self, address: str, contract_name: str = "PingPong") -> AsyncContract:
        """Bind the named contract ABI to an address."""
        return self.w3.eth.contract(
            address=Web3.to_checksum_address(address),
            abi=self.get_contract_abi(contract_name),
        )

    @staticmethod
    def get_contract_abi(contract_name: str) -> list[dict[str, Any]]:
        """Read ``contracts/<contract_name>.json`` shipped with the package.

        Raises:
            FileNotFoundError: If no such contract is packaged
        """
        with (CONTRACTS_DIR / f"{contract_name}.json").open(encoding='utf-8') as file:
            return json.load(file)["abi"]
