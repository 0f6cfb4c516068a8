"""
Blockchain Interaction Package
Handles contract resolution, reads, writes and nonce management
"""

from .abi_registry import AbiDescriptor, is_valid_address, load_abi
from .contract_client import ContractClient
from .errors import (
    AbiMismatchError,
    ArgumentTypeError,
    ContractClientError,
    InsufficientFundsError,
    InvalidAddressError,
    MethodNotFoundError,
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
from .transaction_builder import TransactionBuilder
from .wallet_manager import WalletManager

__all__ = [
    'AbiDescriptor',
    'load_abi',
    'is_valid_address',
    'ContractClient',
    'ContractHandle',
    'Operation',
    'OperationKind',
    'OperationResult',
    'TransactionOptions',
    'TxStatus',
    'NonceManager',
    'TransactionBuilder',
    'WalletManager',
    'ContractClientError',
    'InvalidAddressError',
    'AbiMismatchError',
    'MethodNotFoundError',
    'ArgumentTypeError',
    'NetworkError',
    'InsufficientFundsError',
    'TransactionRejectedError',
]
