"""
Data model for transaction construction and settlement.

Amounts held as strings are human units (e.g. "0.1" TRX); amounts held as
int are chain base units (SUN for TRX, 10**-decimals for tokens).
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Union


class ProtocolKind(str, Enum):
    """How a token is represented on chain"""
    NONE = ""          # native coin
    TRC10 = "trc10"    # first-class ledger asset, addressed by asset id
    TRC20 = "trc20"    # smart-contract token, addressed by contract address

    @classmethod
    def parse(cls, value: "ProtocolKind | str | None") -> "ProtocolKind":
        if isinstance(value, ProtocolKind):
            return value
        text = (value or "").strip().lower()
        for kind in cls:
            if kind.value == text:
                return kind
        raise ValueError(f"{value} is not a supported token protocol")


@dataclass(frozen=True)
class TokenDescriptor:
    symbol: str
    address: str = ""
    name: str = ""
    token: str = ""
    decimals: int = 6
    protocol: ProtocolKind = ProtocolKind.NONE

    @classmethod
    def native(cls, symbol: str = "TRX", decimals: int = 6) -> "TokenDescriptor":
        return cls(symbol=symbol, token=symbol, decimals=decimals)

    @property
    def is_contract(self) -> bool:
        return self.protocol is not ProtocolKind.NONE


@dataclass
class AssetsAccount:
    account_id: str
    wallet_id: str = ""
    alias: str = ""


@dataclass
class Address:
    """An address owned by an account, with the path its key derives from"""
    address: str
    account_id: str
    hd_path: str = ""
    index: int = 0


@dataclass
class KeySignature:
    ecc_type: str
    address: Address
    message: str            # hex digest to sign
    signature: str = ""     # hex, 65 bytes r|s|v once signed


class TxState(str, Enum):
    UNBUILT = "unbuilt"
    BUILT = "built"
    SIGNED = "signed"
    VERIFIED = "verified"
    SUBMITTED = "submitted"


@dataclass
class RawTransaction:
    account: AssetsAccount
    to: Dict[str, str]
    token: TokenDescriptor
    fee_rate: str = ""
    signatures: Dict[str, List[KeySignature]] = field(default_factory=dict)
    raw_hex: str = ""
    is_built: bool = False
    is_completed: bool = False
    is_submit: bool = False
    fees: str = ""
    tx_amount: str = ""
    tx_from: List[str] = field(default_factory=list)
    tx_to: List[str] = field(default_factory=list)
    tx_id: str = ""
    required: int = 1

    def destination(self) -> tuple[str, str]:
        """The single (address, amount) pair of `to`"""
        for address, amount in self.to.items():
            return address, amount
        return "", ""

    def pending_signatures(self) -> List[KeySignature]:
        return self.signatures.get(self.account.account_id) or []

    @property
    def state(self) -> TxState:
        if self.is_submit:
            return TxState.SUBMITTED
        if self.is_completed:
            return TxState.VERIFIED
        if self.is_built:
            sigs = self.pending_signatures()
            if sigs and all(s.signature for s in sigs):
                return TxState.SIGNED
            return TxState.BUILT
        return TxState.UNBUILT


@dataclass
class FeesSupportAccount:
    """Account that tops up resource-starved addresses during a summary.

    Precedence: fix_support_amount (if > 0), then fees_support_scale (if > 0)
    times the estimated fee, then the estimated fee itself.
    """
    account_id: str
    fix_support_amount: str = ""
    fees_support_scale: str = ""


@dataclass
class SummaryRawTransaction:
    account: AssetsAccount
    summary_address: str
    min_transfer: str
    retained_balance: str
    token: TokenDescriptor
    address_start_index: int = 0
    address_limit: int = -1
    fee_rate: str = ""
    fees_support_account: Optional[FeesSupportAccount] = None


@dataclass
class RawTransactionWithError:
    raw_tx: Optional[RawTransaction]
    error: Optional[Exception] = None


@dataclass
class CandidateBalance:
    address: str
    balance: Decimal = Decimal(0)     # human units of the token being moved
    tron_balance: int = 0             # SUN
    token_balance: int = 0            # token base units
    index: int = 0


@dataclass
class TxFeeInfo:
    gas_used: int = 0
    gas_price: Decimal = Decimal(0)   # native coin per resource unit
    fee: Decimal = Decimal(0)         # native coin

    def calc_fee(self) -> None:
        self.fee = self.gas_price * Decimal(self.gas_used)


@dataclass
class Transaction:
    """Record of a broadcast transaction"""
    tx_id: str
    account_id: str
    token: TokenDescriptor
    tx_from: List[str]
    tx_to: List[str]
    amount: str
    fees: str
    decimals: int
    wx_id: str = ""
    submit_time: int = field(default_factory=lambda: int(time.time()))


# Contract payloads, one variant per supported contract kind

@dataclass(frozen=True)
class NativeTransfer:
    owner: bytes
    to: bytes
    amount: int


@dataclass(frozen=True)
class AssetTransfer:
    owner: bytes
    to: bytes
    amount: int
    asset_id: str


@dataclass(frozen=True)
class ContractTrigger:
    owner: bytes
    contract_address: bytes
    data: bytes
    call_value: int = 0


ContractPayload = Union[NativeTransfer, AssetTransfer, ContractTrigger]


@dataclass(frozen=True)
class Envelope:
    wire_hex: str
    digest: bytes

    @property
    def txid(self) -> str:
        return self.digest.hex()
