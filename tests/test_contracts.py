"""
Integration Tests
Run the client against a local Hardhat node with Box deployed
"""

import asyncio

import pytest
from web3 import Web3

from blockchain import ContractClient, TransactionOptions, TxStatus
from scripts.get_instance import BOX_ABI, BOX_ADDRESS
from utils import RPCManager, load_config


# Note: These tests require a local Hardhat node with Box deployed
# Run: npx hardhat node
# Then: npx hardhat run --network localhost scripts/deploy.js
# Then: pytest tests/test_contracts.py


@pytest.fixture
def config():
    return load_config()


@pytest.fixture
def rpc(config):
    manager = RPCManager(config)
    try:
        manager.connect()
    except Exception:
        pytest.skip("No local node at " + manager.rpc_url)
    yield manager
    manager.close()


@pytest.fixture
def box_address(rpc, config):
    address = config['contracts'].get('Box', {}).get('address', BOX_ADDRESS)
    if not rpc.get_code(Web3.to_checksum_address(address)):
        pytest.skip(f"Box is not deployed at {address}")
    return address


class TestLocalNode:
    """Live node checks"""

    def test_list_accounts(self, rpc):
        accounts = rpc.list_accounts()

        assert accounts
        assert all(Web3.is_checksum_address(a) for a in accounts)

    def test_store_then_retrieve(self, rpc, config, box_address):
        async def flow():
            client = ContractClient(rpc, config)
            box = await client.resolve(box_address, BOX_ABI, name='Box')

            result = await client.transact(box, 'store', [23], TransactionOptions(wait_for_confirmation=True))
            assert result.status is TxStatus.CONFIRMED

            return await client.call(box, 'retrieve')

        assert asyncio.run(flow()) == 23

    def test_concurrent_stores_from_one_account(self, rpc, config, box_address):
        async def flow():
            client = ContractClient(rpc, config)
            box = await client.resolve(box_address, BOX_ABI, name='Box')

            return await asyncio.gather(*(
                client.transact(box, 'store', [value]) for value in (31, 32, 33)
            ))

        results = asyncio.run(flow())
        nonces = sorted(r.nonce for r in results)

        assert nonces == list(range(nonces[0], nonces[0] + 3))
        assert all(r.status is TxStatus.CONFIRMED for r in results)


if __name__ == "__main__":
    pytest.main([__file__, '-v'])
