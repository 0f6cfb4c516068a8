"""
Account Listing Script
Prints the accounts managed by the local node
"""

import sys
import asyncio
from contextlib import ExitStack
from typing import Dict, List, Optional
from loguru import logger

from utils import RPCManager, configure_logging, load_config


async def list_accounts(rpc_manager: RPCManager) -> List[str]:
    """Accounts known to the node"""
    accounts = await asyncio.to_thread(rpc_manager.list_accounts)
    logger.info(f"Node manages {len(accounts)} account(s)")
    return accounts


def main(config: Optional[Dict] = None, rpc_manager: Optional[RPCManager] = None) -> int:
    """
    List accounts

    Returns:
        Process exit status (0 success, 1 failure)
    """
    try:
        config = config or load_config()

        with ExitStack() as stack:
            rpc = rpc_manager or stack.enter_context(RPCManager(config))
            rpc.connect()

            accounts = asyncio.run(list_accounts(rpc))

        print(accounts)
        return 0

    except Exception as e:
        logger.error(f"Account listing failed: {e!r}")
        return 1


if __name__ == "__main__":
    configure_logging()
    sys.exit(main())
