"""
Transaction Builder
Fills in sender, nonce, gas and fee fields for contract writes
"""

from typing import Dict
from web3.exceptions import ContractLogicError, Web3Exception
from loguru import logger

from utils.gas_calculator import GasCalculator
from .errors import InsufficientFundsError, TransactionRejectedError
from .models import TransactionOptions


def is_insufficient_funds(error: Exception) -> bool:
    """Node wording for balance too low to cover gas * price + value"""
    message = str(error).lower()
    return 'insufficient funds' in message or 'insufficient balance' in message


class TransactionBuilder:
    """
    Builds transaction parameter dicts for bound contract functions
    """

    def __init__(self, rpc_manager, gas_calculator: GasCalculator = None, gas_multiplier: float = 1.2):
        """
        Initialize Transaction Builder

        Args:
            rpc_manager: RPCManager providing the connection
            gas_calculator: Fee source (default: GasCalculator without caps)
            gas_multiplier: Buffer applied to gas estimates
        """
        self.rpc = rpc_manager
        self.gas_calculator = gas_calculator or GasCalculator(rpc_manager)
        self.gas_multiplier = gas_multiplier
        self._chain_id = None

    @property
    def chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = self.rpc.with_retry(lambda: self.rpc.w3.eth.chain_id, 'eth_chainId')
        return self._chain_id

    def estimate_gas(self, function_call, sender: str, value: int = 0) -> int:
        """
        Estimate gas with buffer

        Args:
            function_call: Bound contract function (fn(*args))
            sender: Sending address
            value: Wei attached

        Returns:
            Gas limit

        Raises:
            TransactionRejectedError: the call would revert
            InsufficientFundsError: sender cannot cover value + gas
        """
        try:
            gas_estimate = self.rpc.with_retry(
                lambda: function_call.estimate_gas({'from': sender, 'value': value}),
                'eth_estimateGas'
            )
        except ContractLogicError as e:
            raise TransactionRejectedError(f"Transaction would revert: {e}") from e
        except (Web3Exception, ValueError) as e:
            if is_insufficient_funds(e):
                raise InsufficientFundsError(str(e)) from e
            raise TransactionRejectedError(f"Gas estimation rejected: {e}") from e

        gas_limit = int(gas_estimate * self.gas_multiplier)
        logger.debug(f"Gas estimate {gas_estimate}, limit {gas_limit}")
        return gas_limit

    def build_params(
        self,
        function_call,
        sender: str,
        nonce: int,
        options: TransactionOptions
    ) -> Dict:
        """
        Build the transaction parameter dict

        Args:
            function_call: Bound contract function
            sender: Sending address
            nonce: Reserved nonce
            options: Per-call options (explicit gas, value)

        Returns:
            Transaction params for transact() / build_transaction()
        """
        params = {
            'from': sender,
            'nonce': nonce,
            'value': options.value,
            'chainId': self.chain_id,
        }

        params['gas'] = options.gas or self.estimate_gas(function_call, sender, options.value)
        params.update(self.gas_calculator.get_fee_params())

        return params
