"""
Gas Calculator
Fee parameters for outgoing transactions (EIP-1559 or legacy gas price)
"""

from typing import Dict, Optional
from web3 import Web3
from loguru import logger


class GasCalculator:
    """
    Picks fee fields from the latest block

    EIP-1559 chains get maxFeePerGas / maxPriorityFeePerGas, older chains a
    plain gasPrice. Both are capped by max_gas_price_gwei when configured.
    """

    def __init__(self, rpc_manager, config: Optional[Dict] = None):
        """
        Initialize Gas Calculator

        Args:
            rpc_manager: RPCManager providing the connection
            config: Client configuration (transactions section)
        """
        self.rpc = rpc_manager

        tx_settings = (config or {}).get('transactions', {})
        self.max_gas_price_gwei = tx_settings.get('max_gas_price_gwei')
        self.priority_fee_gwei = tx_settings.get('priority_fee_gwei')

    @property
    def max_fee_wei(self) -> Optional[int]:
        if self.max_gas_price_gwei is None:
            return None
        return int(Web3.to_wei(self.max_gas_price_gwei, 'gwei'))

    def get_fee_params(self) -> Dict[str, int]:
        """
        Get fee fields for the next transaction

        Returns:
            Dict with gas parameters in wei
        """
        latest_block = self.rpc.with_retry(
            lambda: self.rpc.w3.eth.get_block('latest'),
            'eth_getBlockByNumber'
        )
        base_fee_wei = latest_block.get('baseFeePerGas')

        if base_fee_wei is None:
            return {'gasPrice': self.get_legacy_gas_price()}

        return self.get_eip1559_gas_params(base_fee_wei)

    def get_eip1559_gas_params(self, base_fee_wei: int) -> Dict[str, int]:
        """
        Get EIP-1559 gas parameters (maxFeePerGas, maxPriorityFeePerGas)

        Args:
            base_fee_wei: Base fee of the latest block

        Returns:
            Dict with gas parameters in wei
        """
        if self.priority_fee_gwei is not None:
            priority_fee_wei = int(Web3.to_wei(self.priority_fee_gwei, 'gwei'))
        else:
            priority_fee_wei = self.rpc.with_retry(
                lambda: self.rpc.w3.eth.max_priority_fee,
                'eth_maxPriorityFeePerGas'
            )

        # Max fee = base fee * 2 + priority fee (buffer for fluctuations)
        max_fee_wei = (base_fee_wei * 2) + priority_fee_wei

        cap = self.max_fee_wei
        if cap is not None and max_fee_wei > cap:
            logger.warning(f"Max fee {max_fee_wei} wei capped at {cap} wei")
            max_fee_wei = cap
            priority_fee_wei = min(priority_fee_wei, cap)

        return {
            'maxFeePerGas': int(max_fee_wei),
            'maxPriorityFeePerGas': int(priority_fee_wei)
        }

    def get_legacy_gas_price(self) -> int:
        """
        Network gas price, capped

        Returns:
            Gas price in wei
        """
        gas_price_wei = self.rpc.with_retry(lambda: self.rpc.w3.eth.gas_price, 'eth_gasPrice')

        cap = self.max_fee_wei
        if cap is not None and gas_price_wei > cap:
            logger.warning(f"Gas price {gas_price_wei} wei capped at {cap} wei")
            gas_price_wei = cap

        logger.debug(f"Gas price: {Web3.from_wei(gas_price_wei, 'gwei')} gwei")
        return int(gas_price_wei)
