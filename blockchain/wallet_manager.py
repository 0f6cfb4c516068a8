"""
Wallet Manager
Resolves the sending identity and signs transactions for local keys
"""

import os
from typing import Dict, Optional
from web3 import Web3
from eth_account import Account
from loguru import logger
from dotenv import load_dotenv

from .errors import ContractClientError

load_dotenv()


class WalletManager:
    """
    Sending identity for contract writes

    With SENDER_PRIVATE_KEY set, transactions are signed locally and sent
    raw. Without it the node's first unlocked account is used and the node
    signs, as a Hardhat development node does.
    """

    def __init__(self, rpc_manager, private_key: Optional[str] = None):
        """
        Initialize wallet manager

        Args:
            rpc_manager: RPCManager providing the connection
            private_key: Hex private key (default: SENDER_PRIVATE_KEY env var)
        """
        self.rpc = rpc_manager

        private_key = private_key or os.getenv('SENDER_PRIVATE_KEY')
        self.account = Account.from_key(private_key) if private_key else None
        self._node_sender = None

        if self.account:
            logger.info(f"Local signer: {self.account.address}")

    @property
    def local_address(self) -> Optional[str]:
        return self.account.address if self.account else None

    def default_sender(self) -> str:
        """
        Address used when the caller does not pick one

        Returns:
            Checksummed address

        Raises:
            ContractClientError: no local key and the node manages no accounts
        """
        if self.account:
            return self.account.address

        if self._node_sender is None:
            accounts = self.rpc.list_accounts()
            if not accounts:
                raise ContractClientError(
                    "No sending identity: set SENDER_PRIVATE_KEY or use a node with unlocked accounts"
                )
            self._node_sender = Web3.to_checksum_address(accounts[0])
            logger.info(f"Using node account: {self._node_sender}")

        return self._node_sender

    def can_sign(self, address: str) -> bool:
        """True when address belongs to the local key"""
        return self.account is not None and Web3.to_checksum_address(address) == self.account.address

    def sign_transaction(self, transaction: Dict):
        """
        Sign a transaction with the local key

        Args:
            transaction: Transaction dict

        Returns:
            Signed transaction
        """
        if self.account is None:
            raise ContractClientError("No local key configured for signing")

        try:
            return self.account.sign_transaction(transaction)
        except Exception as e:
            logger.error(f"Error signing transaction: {e}")
            raise
