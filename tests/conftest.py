"""
Shared test fixtures
In-memory node hosting a single Box contract
"""

import threading
import time
from collections import Counter

import pytest
import requests
from eth_abi import encode
from eth_account import Account
from web3 import Web3
from web3.exceptions import ContractLogicError, TransactionNotFound

from blockchain import AbiDescriptor, ContractClient, WalletManager
from scripts.get_instance import BOX_ABI
from utils import RPCManager

BOX_ADDRESS = "0x5fbdb2315678afecb367f032d93f642f64180aa3"
BOX_CHECKSUM = Web3.to_checksum_address(BOX_ADDRESS)

# Hardhat default accounts #0 and #1
ACCOUNTS = [
    "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266",
    "0x70997970C51812dc3A010C7d01b50e0d17dc79C8",
]
SENDER_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"

CHAIN_ID = 31337
BOX_GAS = 26000

# Requests that fail while FakeChain.failing_reads > 0
READ_METHODS = {'eth_call', 'eth_getCode', 'eth_accounts', 'eth_getTransactionReceipt'}


def selector(signature: str) -> bytes:
    return bytes(Web3.keccak(text=signature)[:4])


def dispatcher_code(*signatures: str) -> bytes:
    """Runtime-code stand-in: a PUSH4 per selector after the usual preamble"""
    return b'\x60\x80\x60\x40\x52' + b''.join(b'\x63' + selector(s) for s in signatures)


BOX_CODE = dispatcher_code('retrieve()', 'store(uint256)')


class FakeChain:
    """Node state plus knobs for injecting failures"""

    def __init__(self):
        self.stored = 0
        self.accounts = list(ACCOUNTS)
        self.code = {BOX_CHECKSUM: BOX_CODE}
        self.nonces = {}
        self.receipts = {}
        self.unmined = []
        self.sent = []
        self.last_built = {}
        self.block_number = 1
        self.base_fee = Web3.to_wei(1, 'gwei')
        self.request_counts = Counter()

        self.failing_reads = 0
        self.fail_writes = False
        self.insufficient_funds = False
        self.revert_store = False
        self.auto_mine = True
        self.mined_status = 1
        self.submit_delay = 0.0

        self._lock = threading.Lock()

    @property
    def network_calls(self) -> int:
        return sum(self.request_counts.values())

    def record(self, method: str):
        with self._lock:
            self.request_counts[method] += 1
            if method in READ_METHODS and self.failing_reads > 0:
                self.failing_reads -= 1
                raise requests.exceptions.ConnectionError("connection reset by peer")

    def submit(self, sender: str, nonce: int, method: str, args, raw: bool = False) -> bytes:
        self.record('eth_sendTransaction')
        if self.fail_writes:
            raise requests.exceptions.ConnectionError("connection dropped")

        time.sleep(self.submit_delay)

        with self._lock:
            expected = self.nonces.get(sender, 0)
            if nonce != expected:
                raise ValueError(f"nonce too low: expected {expected}, got {nonce}")

            self.nonces[sender] = nonce + 1
            tx_hash = bytes(Web3.keccak(text=f"{sender}:{nonce}"))
            self.sent.append({'sender': sender, 'nonce': nonce, 'method': method, 'args': tuple(args), 'raw': raw})
            self.unmined.append((tx_hash, method, tuple(args)))

        if self.auto_mine:
            self.mine()

        return tx_hash

    def mine(self):
        with self._lock:
            for tx_hash, method, args in self.unmined:
                self.block_number += 1
                if method == 'store' and self.mined_status == 1:
                    self.stored = args[0]
                self.receipts[Web3.to_hex(tx_hash)] = {
                    'transactionHash': tx_hash,
                    'status': self.mined_status,
                    'blockNumber': self.block_number,
                    'gasUsed': BOX_GAS,
                }
            self.unmined = []


class FakeFunctionCall:
    def __init__(self, chain: FakeChain, address: str, name: str, args):
        self.chain = chain
        self.address = address
        self.name = name
        self.args = args

    def call(self, *args, **kwargs):
        self.chain.record('eth_call')
        if self.name == 'retrieve':
            return self.chain.stored
        raise ContractLogicError("execution reverted")

    def estimate_gas(self, params):
        self.chain.record('eth_estimateGas')
        if self.chain.insufficient_funds:
            raise ValueError("insufficient funds for gas * price + value")
        if self.name == 'store' and self.chain.revert_store:
            raise ContractLogicError("execution reverted: value rejected")
        return BOX_GAS

    def transact(self, params):
        return self.chain.submit(params['from'], params['nonce'], self.name, self.args)

    def build_transaction(self, params):
        data = selector('store(uint256)') + encode(['uint256'], list(self.args))
        self.chain.last_built[params['from']] = (params['nonce'], self.name, self.args)
        return dict(params, to=self.address, data='0x' + data.hex())


class FakeContract:
    SIGNATURES = ('retrieve()', 'store(uint256)')

    def __init__(self, chain: FakeChain, address: str):
        self.chain = chain
        self.address = address

    def get_function_by_signature(self, signature: str):
        if signature not in self.SIGNATURES:
            raise ValueError(f"Function with signature {signature} not found")
        name = signature.split('(')[0]
        return lambda *args: FakeFunctionCall(self.chain, self.address, name, args)


class FakeEth:
    def __init__(self, chain: FakeChain):
        self.chain = chain

    @property
    def accounts(self):
        self.chain.record('eth_accounts')
        return list(self.chain.accounts)

    @property
    def chain_id(self):
        self.chain.record('eth_chainId')
        return CHAIN_ID

    @property
    def max_priority_fee(self):
        self.chain.record('eth_maxPriorityFeePerGas')
        return Web3.to_wei(1, 'gwei')

    @property
    def gas_price(self):
        self.chain.record('eth_gasPrice')
        return Web3.to_wei(2, 'gwei')

    def get_code(self, address):
        self.chain.record('eth_getCode')
        return self.chain.code.get(address, b'')

    def get_block(self, block_identifier):
        self.chain.record('eth_getBlockByNumber')
        block = {'number': self.chain.block_number}
        if self.chain.base_fee is not None:
            block['baseFeePerGas'] = self.chain.base_fee
        return block

    def get_transaction_count(self, address, block_identifier='latest'):
        self.chain.record('eth_getTransactionCount')
        return self.chain.nonces.get(address, 0)

    def contract(self, address=None, abi=None):
        return FakeContract(self.chain, address)

    def send_raw_transaction(self, raw_transaction):
        sender = Account.recover_transaction(raw_transaction)
        nonce, name, args = self.chain.last_built[sender]
        return self.chain.submit(sender, nonce, name, args, raw=True)

    def get_transaction_receipt(self, tx_hash):
        self.chain.record('eth_getTransactionReceipt')
        key = tx_hash if isinstance(tx_hash, str) else Web3.to_hex(tx_hash)
        if key not in self.chain.receipts:
            raise TransactionNotFound(f"Transaction with hash: '{key}' not found.")
        return self.chain.receipts[key]


class FakeWeb3:
    def __init__(self, chain: FakeChain):
        self.eth = FakeEth(chain)

    def is_connected(self):
        return True


@pytest.fixture
def test_config():
    """Client configuration with instant retries and polling"""
    return {
        'network': {'rpc_url': 'http://127.0.0.1:8545', 'request_timeout': 5},
        'retry': {'max_attempts': 3, 'backoff_base_seconds': 0, 'backoff_max_seconds': 0},
        'transactions': {
            'gas_multiplier': 1.2,
            'confirmation_timeout_seconds': 2,
            'poll_interval_seconds': 0,
            'max_gas_price_gwei': 500,
            'priority_fee_gwei': None
        },
        'resolution': {'verify_selectors': True},
        'artifacts_dir': 'does-not-exist',
        'contracts': {'Box': {'address': BOX_ADDRESS}}
    }


@pytest.fixture(autouse=True)
def no_env_key(monkeypatch):
    """Keep a developer's .env from switching tests to local signing"""
    monkeypatch.delenv('SENDER_PRIVATE_KEY', raising=False)


@pytest.fixture
def chain():
    return FakeChain()


@pytest.fixture
def rpc_manager(chain, test_config):
    rpc = RPCManager(test_config, w3=FakeWeb3(chain))
    rpc._sleep = lambda seconds: None
    return rpc


@pytest.fixture
def wallet(rpc_manager):
    return WalletManager(rpc_manager)


@pytest.fixture
def client(rpc_manager, wallet, test_config):
    return ContractClient(rpc_manager, test_config, wallet_manager=wallet)


@pytest.fixture
def box_abi():
    return AbiDescriptor(BOX_ABI, name='Box')
