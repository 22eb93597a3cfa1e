import pytest
from tronpy import keys
from tronpy.keys import PrivateKey

from tronsettle.core.config import SettlementConfig
from tronsettle.core.errors import NodeRequestError
from tronsettle.core.models import Address, AssetsAccount, ProtocolKind, TokenDescriptor
from tronsettle.core.node.client import NodeGateway
from tronsettle.core.services.settlement import TransactionDecoder

BLOCK_ID = "0000000002f5b1a3" + "ab" * 24
NOW = 1_700_000_000.0


def make_key(n: int) -> PrivateKey:
    return PrivateKey(bytes([n]) * 32)


def to_hex(address: str) -> str:
    return keys.to_hex_address(address).lower()


class FakeNode:
    """In-memory full node answering the wallet endpoints by address hex"""

    def __init__(self):
        self.accounts = {}
        self.net = {}
        self.resources = {}
        self.trc20 = {}
        self.block = {"blockID": BLOCK_ID}
        self.broadcast_response = {"result": True}
        self.calls = []
        self.fail = {}

    def fund(self, address, sun=0, assets=None):
        address_hex = to_hex(address)
        self.accounts[address_hex] = {
            "address": address_hex,
            "balance": sun,
            "assetV2": [{"key": k, "value": v} for k, v in (assets or {}).items()],
        }

    def set_trc20(self, contract, owner, amount):
        self.trc20[(to_hex(contract), to_hex(owner))] = amount

    def call(self, endpoint, params):
        self.calls.append((endpoint, dict(params)))
        if self.fail.get(endpoint):
            self.fail[endpoint] -= 1
            raise NodeRequestError(f"{endpoint} unavailable")
        handler = {
            "/wallet/getnowblock": lambda p: self.block,
            "/wallet/getaccount": lambda p: self.accounts.get(p["address"], {}),
            "/wallet/getaccountnet": lambda p: self.net.get(p["address"], {"freeNetLimit": 600}),
            "/wallet/getaccountresource": lambda p: self.resources.get(p["address"], {}),
            "/wallet/triggerconstantcontract": self._constant_call,
            "/wallet/getcontract": lambda p: {"contract_address": p["value"]},
            "/wallet/broadcasthex": lambda p: self.broadcast_response,
        }[endpoint]
        return handler(params)

    def _constant_call(self, params):
        amount = self.trc20.get((params["contract_address"], params["owner_address"]))
        if amount is None:
            return {"result": {"code": "CONTRACT_VALIDATE_ERROR", "message": b"contract reverted".hex()}}
        return {"result": {"result": True}, "constant_result": [format(amount, "064x")]}

    def count(self, endpoint):
        return sum(1 for e, _ in self.calls if e == endpoint)


class FakeWallet:
    """Wallet store keeping addresses and their keys in memory"""

    def __init__(self):
        self.accounts = {}
        self.addresses = {}
        self.keys = {}

    def add_address(self, account_id: str, n: int) -> str:
        self.accounts.setdefault(account_id, AssetsAccount(account_id=account_id, wallet_id="w1"))
        entries = self.addresses.setdefault(account_id, [])
        index = len(entries)
        address = make_key(n).public_key.to_base58check_address()
        path = f"m/44'/195'/0'/0/{index}"
        entries.append(Address(address=address, account_id=account_id, hd_path=path, index=index))
        self.keys[(account_id, path)] = bytes([n]) * 32
        return address

    def get_address_list(self, account_id, offset=0, limit=-1):
        entries = self.addresses.get(account_id, [])[offset:]
        return entries if limit < 0 else entries[:limit]

    def find_address(self, account_id, address):
        for entry in self.addresses.get(account_id, []):
            if entry.address == address:
                return entry
        return None

    def get_address(self, address):
        for entries in self.addresses.values():
            for entry in entries:
                if entry.address == address:
                    return entry
        return None

    def get_assets_account(self, account_id):
        return self.accounts.get(account_id)

    def derive_private_key(self, account, path, curve):
        return self.keys[(account.account_id, path)]


@pytest.fixture
def settings():
    cfg = SettlementConfig()
    cfg.fee_limit = 10_000_000
    cfg.fee_mini = 30_000
    cfg.energy_price = 140
    cfg.bandwidth_price = 1000
    cfg.create_account_cost = 100_000
    cfg.expiration_ms = 36_000_000
    return cfg


@pytest.fixture
def node():
    return FakeNode()


@pytest.fixture
def gateway(node):
    return NodeGateway(node)


@pytest.fixture
def wallet():
    return FakeWallet()


@pytest.fixture
def decoder(wallet, gateway, settings):
    d = TransactionDecoder(wallet, gateway, settings)
    d.builder.clock = lambda: NOW
    return d


@pytest.fixture
def outsider():
    """An address outside every test account"""
    return make_key(0x55).public_key.to_base58check_address()


@pytest.fixture
def trc10():
    return TokenDescriptor(
        symbol="TRX", address="1002000", name="BitTorrent", token="BTT",
        decimals=6, protocol=ProtocolKind.TRC10,
    )


@pytest.fixture
def trc20():
    contract = make_key(0x77).public_key.to_base58check_address()
    return TokenDescriptor(
        symbol="TRX", address=contract, name="Tether USD", token="USDT",
        decimals=6, protocol=ProtocolKind.TRC20,
    )
