"""
RPC Manager
Owns the node connection and retries transient transport failures for reads
"""

import time
from typing import Any, Callable, Dict, List, Optional
import requests
from web3 import Web3
from web3.exceptions import TransactionNotFound
from loguru import logger

from blockchain.errors import NetworkError

# Failures worth retrying: the request may not have reached the node or the answer was lost
TRANSIENT_ERRORS = (
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
    ConnectionError,
    TimeoutError,
)


class RPCManager:
    """
    Network connection capability handed to the contract client

    Lifecycle is explicit: connect() before use, close() when the session
    ends (or use it as a context manager).
    """

    def __init__(self, config: Optional[Dict] = None, w3: Optional[Web3] = None):
        """
        Initialize RPC Manager

        Args:
            config: Client configuration (network and retry sections)
            w3: Already-built Web3 instance (skips provider creation)
        """
        config = config or {}
        network = config.get('network', {})
        retry = config.get('retry', {})

        self.rpc_url = network.get('rpc_url', 'http://127.0.0.1:8545')
        self.request_timeout = network.get('request_timeout', 30)

        self.max_attempts = max(1, int(retry.get('max_attempts', 4)))
        self.backoff_base = float(retry.get('backoff_base_seconds', 0.5))
        self.backoff_max = float(retry.get('backoff_max_seconds', 8.0))

        self._w3 = w3
        self._sleep = time.sleep

        # Usage tracking
        self.usage_stats = {
            'requests': 0,
            'retries': 0,
            'failures': 0,
            'last_failure_time': 0
        }

    def connect(self) -> Web3:
        """
        Open the connection (no-op when a Web3 instance was injected)

        Returns:
            Web3 instance

        Raises:
            NetworkError: node unreachable
        """
        if self._w3 is None:
            w3 = Web3(self.build_provider())

            if not w3.is_connected():
                raise NetworkError(f"Cannot reach node at {self.rpc_url}")

            self._w3 = w3
            logger.success(f"Connected to {self.rpc_url}")

        return self._w3

    def build_provider(self) -> Web3.HTTPProvider:
        """
        HTTP provider with web3's own request retries disabled

        with_retry() and execute() are the only retry policy.
        """
        return Web3.HTTPProvider(
            self.rpc_url,
            request_kwargs={'timeout': self.request_timeout},
            exception_retry_configuration=None
        )

    def close(self):
        """Drop the connection"""
        if self._w3 is not None:
            self._w3 = None
            logger.info(f"Disconnected from {self.rpc_url}")

    def __enter__(self) -> 'RPCManager':
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    @property
    def w3(self) -> Web3:
        if self._w3 is None:
            raise NetworkError("RPC connection is not open; call connect() first")
        return self._w3

    @property
    def connected(self) -> bool:
        return self._w3 is not None

    def with_retry(self, fn: Callable[[], Any], description: str = 'rpc call') -> Any:
        """
        Run an idempotent read, retrying transient failures with exponential backoff

        Args:
            fn: Zero-argument callable performing the request
            description: Label used in logs and errors

        Returns:
            Whatever fn returns

        Raises:
            NetworkError: all attempts failed with transport errors
        """
        for attempt in range(self.max_attempts):
            try:
                self.usage_stats['requests'] += 1
                return fn()

            except TRANSIENT_ERRORS as e:
                self._record_failure()

                if attempt == self.max_attempts - 1:
                    logger.error(f"{description} failed after {self.max_attempts} attempts: {e}")
                    raise NetworkError(f"{description} failed: {e}") from e

                delay = min(self.backoff_base * (2 ** attempt), self.backoff_max)
                self.usage_stats['retries'] += 1
                logger.debug(f"{description} failed ({e}), retrying in {delay:.2f}s")
                self._sleep(delay)

    def execute(self, fn: Callable[[], Any], description: str = 'rpc call') -> Any:
        """
        Run a non-idempotent request exactly once

        Transport failures become NetworkError; the caller decides whether
        resubmitting is safe.
        """
        try:
            self.usage_stats['requests'] += 1
            return fn()
        except TRANSIENT_ERRORS as e:
            self._record_failure()
            logger.error(f"{description} failed (not retried): {e}")
            raise NetworkError(f"{description} failed: {e}") from e

    def _record_failure(self):
        self.usage_stats['failures'] += 1
        self.usage_stats['last_failure_time'] = time.time()

    def list_accounts(self) -> List[str]:
        """Accounts managed by the node"""
        return list(self.with_retry(lambda: self.w3.eth.accounts, 'eth_accounts'))

    def get_code(self, address: str) -> bytes:
        """Runtime bytecode at address (empty when no contract is deployed)"""
        return bytes(self.with_retry(lambda: self.w3.eth.get_code(address), 'eth_getCode'))

    def get_receipt(self, tx_hash) -> Optional[Dict]:
        """
        Transaction receipt, or None while the transaction is not mined
        """
        def fetch():
            try:
                return self.w3.eth.get_transaction_receipt(tx_hash)
            except TransactionNotFound:
                return None

        return self.with_retry(fetch, 'eth_getTransactionReceipt')

    def is_healthy(self) -> bool:
        """
        Check if the node answers

        Returns:
            True if healthy
        """
        try:
            return self._w3 is not None and self._w3.is_connected()
        except Exception:
            return False

    def get_usage_stats(self) -> Dict:
        """Get request statistics"""
        total = self.usage_stats['requests']
        failures = self.usage_stats['failures']
        success_rate = ((total - failures) / total * 100) if total > 0 else 100

        return {
            'rpc_url': self.rpc_url,
            'connected': self.connected,
            **self.usage_stats,
            'success_rate': f"{success_rate:.1f}%"
        }
