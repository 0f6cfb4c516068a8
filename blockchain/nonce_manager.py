"""
Nonce Manager
Serializes writes per sending identity so nonces never collide
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Dict, Optional, Set
from web3 import Web3
from loguru import logger


class NonceManager:
    """
    Hands out nonces per identity under that identity's lock

    The lock is held for the whole reserve() block, so the caller submits
    the transaction before the next writer gets a nonce. Different
    identities do not block each other.
    """

    def __init__(self, rpc_manager):
        """
        Initialize Nonce Manager

        Args:
            rpc_manager: RPCManager providing the connection
        """
        self.rpc = rpc_manager

        # Internal nonce tracking
        self._next_nonce: Dict[str, int] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self.pending_nonces: Dict[str, Set[int]] = {}

    def _lock_for(self, identity: str) -> asyncio.Lock:
        return self._locks.setdefault(identity, asyncio.Lock())

    def _sync_nonce(self, identity: str) -> int:
        """Read the identity's transaction count, pending ones included"""
        nonce = self.rpc.with_retry(
            lambda: self.rpc.w3.eth.get_transaction_count(identity, 'pending'),
            'eth_getTransactionCount'
        )
        logger.debug(f"Nonce synced for {identity}: {nonce}")
        return nonce

    @asynccontextmanager
    async def reserve(self, identity: str):
        """
        Reserve the next nonce for identity

        Usage:
            async with nonce_manager.reserve(sender) as nonce:
                submit(tx with nonce)

        The nonce is consumed when the block exits normally. If it raises
        (or is cancelled) the cached value is dropped and the next
        reservation resyncs from the node.
        """
        identity = Web3.to_checksum_address(identity)

        async with self._lock_for(identity):
            nonce = self._next_nonce.get(identity)
            if nonce is None:
                nonce = await asyncio.to_thread(self._sync_nonce, identity)

            logger.debug(f"Allocated nonce {nonce} for {identity}")

            try:
                yield nonce
            except BaseException:
                self._next_nonce.pop(identity, None)
                logger.warning(f"Nonce {nonce} for {identity} not confirmed as used, will resync")
                raise

            self._next_nonce[identity] = nonce + 1
            self.pending_nonces.setdefault(identity, set()).add(nonce)

    async def confirm_nonce(self, identity: str, nonce: int):
        """
        Mark a nonce as mined

        Args:
            identity: Sending address
            nonce: Nonce that was confirmed
        """
        identity = Web3.to_checksum_address(identity)
        pending = self.pending_nonces.get(identity, set())

        if nonce in pending:
            pending.discard(nonce)
            logger.debug(f"Confirmed nonce {nonce} for {identity}")

    async def reset_nonce(self, identity: str):
        """Forget local state and resync from the node (used after a stuck transaction)"""
        identity = Web3.to_checksum_address(identity)

        async with self._lock_for(identity):
            self._next_nonce[identity] = await asyncio.to_thread(self._sync_nonce, identity)
            self.pending_nonces.pop(identity, None)
            logger.warning(f"Nonce for {identity} reset to: {self._next_nonce[identity]}")

    def get_pending_count(self, identity: str) -> int:
        """Get count of submitted but unconfirmed transactions"""
        return len(self.pending_nonces.get(Web3.to_checksum_address(identity), ()))

    def get_current_nonce(self, identity: str) -> Optional[int]:
        """Next nonce to hand out, None until the first reservation"""
        return self._next_nonce.get(Web3.to_checksum_address(identity))
