"""
Contract Client Models
Handles, operations and results passed between caller and client
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple


class OperationKind(str, Enum):
    READ = 'read'
    WRITE = 'write'


class TxStatus(str, Enum):
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    FAILED = 'failed'


@dataclass(frozen=True)
class ContractHandle:
    """
    Resolved reference to a deployed contract

    Created once per (address, ABI) by ContractClient.resolve and reused
    for any number of operations.
    """
    address: str
    abi: Any  # AbiDescriptor
    name: Optional[str] = None
    contract: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Operation:
    """Single invocation request"""
    method: str
    args: Tuple[Any, ...] = ()
    kind: OperationKind = OperationKind.READ


@dataclass
class TransactionOptions:
    """
    Per-call settings for ContractClient.transact

    Args:
        sender: Sending identity (None = wallet default)
        wait_for_confirmation: Block until the receipt is available
        confirmation_timeout: Seconds to wait for the receipt (None = config)
        gas: Gas limit (None = estimate)
        value: Wei sent along with the call
    """
    sender: Optional[str] = None
    wait_for_confirmation: bool = True
    confirmation_timeout: Optional[float] = None
    gas: Optional[int] = None
    value: int = 0


@dataclass(frozen=True)
class OperationResult:
    """Outcome of a submitted write"""
    method: str
    tx_hash: str
    sender: str
    nonce: int
    status: TxStatus = TxStatus.PENDING
    block_number: Optional[int] = None
    gas_used: Optional[int] = None

    @property
    def confirmed(self) -> bool:
        return self.status is TxStatus.CONFIRMED
