"""
Contract Client
Resolves deployed contracts and performs typed reads and writes against them
"""

import asyncio
from dataclasses import replace
from typing import Any, Dict, Optional, Sequence, Tuple
from web3 import Web3
from web3.exceptions import ContractLogicError, Web3Exception
from loguru import logger

from utils.gas_calculator import GasCalculator
from .abi_registry import AbiDescriptor, is_valid_address, load_abi
from .errors import (
    AbiMismatchError,
    InsufficientFundsError,
    InvalidAddressError,
    NetworkError,
    TransactionRejectedError,
)
from .models import (
    ContractHandle,
    Operation,
    OperationKind,
    OperationResult,
    TransactionOptions,
    TxStatus,
)
from .nonce_manager import NonceManager
from .transaction_builder import TransactionBuilder, is_insufficient_funds
from .wallet_manager import WalletManager


class ContractClient:
    """
    Contract interaction client

    Reads (call) are retried on transport failures and may run in
    parallel. Writes (transact) are serialized per sending identity and
    submitted exactly once; a failed submission is surfaced, never retried.
    """

    def __init__(
        self,
        rpc_manager,
        config: Optional[Dict] = None,
        wallet_manager: Optional[WalletManager] = None,
        nonce_manager: Optional[NonceManager] = None,
        transaction_builder: Optional[TransactionBuilder] = None
    ):
        """
        Initialize Contract Client

        Args:
            rpc_manager: Connected RPCManager (owned by the caller)
            config: Client configuration
            wallet_manager: Sending identity (default: WalletManager from env)
            nonce_manager: Nonce sequencing (default: new NonceManager)
            transaction_builder: Gas/fee filling (default: from config)
        """
        self.rpc = rpc_manager
        self.config = config or {}

        tx_settings = self.config.get('transactions', {})
        self.confirmation_timeout = float(tx_settings.get('confirmation_timeout_seconds', 120))
        self.poll_interval = float(tx_settings.get('poll_interval_seconds', 0.5))
        self.verify_selectors = self.config.get('resolution', {}).get('verify_selectors', True)

        self.wallet = wallet_manager or WalletManager(rpc_manager)
        self.nonce_manager = nonce_manager or NonceManager(rpc_manager)
        self.tx_builder = transaction_builder or TransactionBuilder(
            rpc_manager,
            GasCalculator(rpc_manager, self.config),
            gas_multiplier=float(tx_settings.get('gas_multiplier', 1.2))
        )

        # (checksum address, ABI fingerprint) -> handle
        self._handles: Dict[Tuple[str, str], ContractHandle] = {}
        self._resolve_lock = asyncio.Lock()

        logger.info("Contract Client initialized")

    async def resolve(self, address: str, abi, name: Optional[str] = None) -> ContractHandle:
        """
        Resolve a deployed contract

        Args:
            address: Contract address
            abi: AbiDescriptor, ABI list, or path to an artifact/ABI file
            name: Contract name for messages

        Returns:
            Cached or newly created ContractHandle

        Raises:
            InvalidAddressError: malformed address (checked before any network call)
            AbiMismatchError: no code at address, or ABI selectors missing from it
            NetworkError: node unreachable
        """
        if not is_valid_address(address):
            raise InvalidAddressError(f"Malformed address: {address!r}")

        checksum_address = Web3.to_checksum_address(address)
        descriptor = load_abi(abi, name=name)
        key = (checksum_address, descriptor.fingerprint)

        handle = self._handles.get(key)
        if handle is not None:
            return handle

        async with self._resolve_lock:
            handle = self._handles.get(key)
            if handle is not None:
                return handle

            code = await asyncio.to_thread(self.rpc.get_code, checksum_address)
            self._verify_bytecode(descriptor, checksum_address, code)

            contract = self.rpc.w3.eth.contract(address=checksum_address, abi=descriptor.abi)
            handle = ContractHandle(
                address=checksum_address,
                abi=descriptor,
                name=name or descriptor.name,
                contract=contract
            )
            self._handles[key] = handle

        logger.success(f"{descriptor.label} resolved at {checksum_address}")
        return handle

    def _verify_bytecode(self, descriptor: AbiDescriptor, address: str, code: bytes):
        if not code:
            raise AbiMismatchError(f"No contract code at {address}")

        if self.verify_selectors:
            missing = descriptor.missing_selectors(code)
            if missing:
                raise AbiMismatchError(
                    f"{descriptor.label} at {address} does not implement: {', '.join(missing)}"
                )

    def _bind(self, handle: ContractHandle, operation: Operation):
        """Validate the operation against the ABI and bind it to the contract"""
        entry, args = handle.abi.resolve_function(operation.method, operation.kind, operation.args)
        function = handle.contract.get_function_by_signature(handle.abi.signature(entry))
        return function(*args)

    async def call(self, handle: ContractHandle, method: str, args: Sequence[Any] = ()) -> Any:
        """
        Invoke a view/pure method

        Args:
            handle: Resolved contract
            method: Method name
            args: Positional arguments

        Returns:
            Decoded return value

        Raises:
            MethodNotFoundError, ArgumentTypeError, NetworkError,
            TransactionRejectedError (call reverted)
        """
        operation = Operation(method, tuple(args), OperationKind.READ)
        function_call = self._bind(handle, operation)
        description = f"{handle.abi.label}.{method}()"

        try:
            value = await asyncio.to_thread(self.rpc.with_retry, function_call.call, description)
        except ContractLogicError as e:
            raise TransactionRejectedError(f"{description} reverted: {e}") from e

        logger.debug(f"{description} -> {value!r}")
        return value

    async def transact(
        self,
        handle: ContractHandle,
        method: str,
        args: Sequence[Any] = (),
        options: Optional[TransactionOptions] = None
    ) -> OperationResult:
        """
        Submit a state-changing method call

        Args:
            handle: Resolved contract
            method: Method name
            args: Positional arguments
            options: Sender, confirmation and gas settings

        Returns:
            OperationResult (pending unless confirmation was awaited)

        Raises:
            MethodNotFoundError, ArgumentTypeError, NetworkError,
            InsufficientFundsError, TransactionRejectedError
        """
        options = options or TransactionOptions()
        operation = Operation(method, tuple(args), OperationKind.WRITE)
        function_call = self._bind(handle, operation)

        if options.sender is not None:
            if not is_valid_address(options.sender):
                raise InvalidAddressError(f"Malformed sender address: {options.sender!r}")
            sender = Web3.to_checksum_address(options.sender)
        else:
            sender = await asyncio.to_thread(self.wallet.default_sender)

        async with self.nonce_manager.reserve(sender) as nonce:
            submission = asyncio.ensure_future(
                asyncio.to_thread(self._submit, function_call, operation, sender, nonce, options)
            )
            try:
                tx_hash = await asyncio.shield(submission)
            except asyncio.CancelledError:
                # Node may still accept it; hold the identity until the send settles
                await asyncio.wait({submission})
                raise

        logger.info(f"{handle.abi.label}.{method} submitted: {tx_hash} (nonce {nonce})")
        result = OperationResult(method=method, tx_hash=tx_hash, sender=sender, nonce=nonce)

        if options.wait_for_confirmation:
            result = await self.wait_for_confirmation(result, options.confirmation_timeout)

        return result

    def _submit(
        self,
        function_call,
        operation: Operation,
        sender: str,
        nonce: int,
        options: TransactionOptions
    ) -> str:
        """Build, sign if needed and send one transaction (runs in a worker thread)"""
        params = self.tx_builder.build_params(function_call, sender, nonce, options)
        description = f"{operation.method} transaction"

        try:
            if self.wallet.can_sign(sender):
                signed_tx = self.wallet.sign_transaction(function_call.build_transaction(params))
                tx_hash = self.rpc.execute(
                    lambda: self.rpc.w3.eth.send_raw_transaction(signed_tx.raw_transaction),
                    description
                )
            else:
                tx_hash = self.rpc.execute(lambda: function_call.transact(params), description)

        except ContractLogicError as e:
            raise TransactionRejectedError(f"{operation.method} reverted: {e}") from e
        except (Web3Exception, ValueError) as e:
            if is_insufficient_funds(e):
                raise InsufficientFundsError(str(e)) from e
            raise TransactionRejectedError(f"{operation.method} rejected: {e}") from e

        return Web3.to_hex(tx_hash)

    async def wait_for_confirmation(
        self,
        result: OperationResult,
        timeout: Optional[float] = None
    ) -> OperationResult:
        """
        Poll for the receipt of a submitted write

        Cancelling the awaiting task only stops local waiting; the
        transaction itself is unaffected.

        Args:
            result: Result returned by transact
            timeout: Seconds to wait (None = config default)

        Returns:
            Result with status confirmed/failed, or unchanged (pending) on
            timeout or when the receipt cannot be fetched
        """
        timeout = self.confirmation_timeout if timeout is None else timeout
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        try:
            while True:
                receipt = await asyncio.to_thread(self.rpc.get_receipt, result.tx_hash)
                if receipt is not None:
                    break

                if loop.time() >= deadline:
                    logger.warning(f"{result.tx_hash} still pending after {timeout}s")
                    return result

                await asyncio.sleep(self.poll_interval)

        except NetworkError as e:
            # Already submitted: report pending so the caller keeps the hash
            logger.warning(f"Receipt lookup for {result.tx_hash} failed, still pending: {e}")
            return result

        except asyncio.CancelledError:
            logger.info(f"Stopped waiting for {result.tx_hash}; it may still be mined")
            raise

        await self.nonce_manager.confirm_nonce(result.sender, result.nonce)

        status = TxStatus.CONFIRMED if receipt['status'] == 1 else TxStatus.FAILED
        result = replace(
            result,
            status=status,
            block_number=receipt.get('blockNumber'),
            gas_used=receipt.get('gasUsed')
        )

        if status is TxStatus.CONFIRMED:
            logger.success(f"{result.method} confirmed in block {result.block_number}: {result.tx_hash}")
        else:
            logger.error(f"{result.method} reverted on-chain: {result.tx_hash}")

        return result

    @property
    def cached_handles(self) -> int:
        return len(self._handles)

    def close(self):
        """End the session: forget resolved handles"""
        self._handles.clear()
        logger.info("Contract Client closed")
