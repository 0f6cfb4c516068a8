"""
Box Interaction Script
Attaches to the deployed Box contract, reads it, stores 23 and reads it again
"""

import os
import sys
import asyncio
from contextlib import ExitStack
from typing import Dict, Optional, Tuple
from loguru import logger

from blockchain import (
    AbiDescriptor,
    ContractClient,
    TransactionOptions,
    TransactionRejectedError,
    TxStatus,
)
from utils import RPCManager, configure_logging, load_config

BOX_ADDRESS = "0x5fbdb2315678afecb367f032d93f642f64180aa3"
NEW_VALUE = 23

# Used when compiled artifacts are not available
BOX_ABI = [
    {
        "anonymous": False,
        "inputs": [{"indexed": False, "name": "value", "type": "uint256"}],
        "name": "ValueChanged",
        "type": "event"
    },
    {
        "inputs": [],
        "name": "retrieve",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [{"name": "value", "type": "uint256"}],
        "name": "store",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function"
    }
]


def load_box_abi(config: Dict) -> AbiDescriptor:
    """Box ABI from Hardhat artifacts, falling back to the bundled copy"""
    artifacts_dir = config.get('artifacts_dir', 'artifacts')

    if os.path.isdir(artifacts_dir):
        try:
            return AbiDescriptor.from_contract_name('Box', artifacts_dir)
        except FileNotFoundError:
            logger.warning(f"Box artifact not found under {artifacts_dir}")

    logger.info("Using bundled Box ABI")
    return AbiDescriptor(BOX_ABI, name='Box')


async def run_box_flow(
    client: ContractClient,
    address: str,
    abi: AbiDescriptor,
    new_value: int = NEW_VALUE
) -> Tuple[int, int]:
    """
    Read, store and read again

    Args:
        client: Contract client
        address: Deployed Box address
        abi: Box ABI
        new_value: Value to store

    Returns:
        (value before, value after)
    """
    box = await client.resolve(address, abi, name='Box')

    before = await client.call(box, 'retrieve')
    print(f"Box value is {before}")

    result = await client.transact(
        box,
        'store',
        [new_value],
        TransactionOptions(wait_for_confirmation=True)
    )
    if result.status is TxStatus.FAILED:
        raise TransactionRejectedError(f"store({new_value}) reverted: {result.tx_hash}")
    if result.status is TxStatus.PENDING:
        logger.warning("store() not confirmed yet, next read may show the old value")

    after = await client.call(box, 'retrieve')
    print(f"Box value is {after}")

    return before, after


def main(config: Optional[Dict] = None, rpc_manager: Optional[RPCManager] = None) -> int:
    """
    Run the Box flow

    Returns:
        Process exit status (0 success, 1 failure)
    """
    try:
        config = config or load_config()
        address = config.get('contracts', {}).get('Box', {}).get('address', BOX_ADDRESS)

        with ExitStack() as stack:
            rpc = rpc_manager or stack.enter_context(RPCManager(config))
            rpc.connect()

            client = ContractClient(rpc, config)
            try:
                asyncio.run(run_box_flow(client, address, load_box_abi(config)))
            finally:
                client.close()

        return 0

    except Exception as e:
        logger.error(f"Box flow failed: {e!r}")
        return 1


if __name__ == "__main__":
    configure_logging()
    sys.exit(main())
