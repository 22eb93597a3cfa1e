"""
Settlement Module for tronsettle
Builds, signs, verifies and broadcasts TRX / TRC10 / TRC20 transfers
and sweeps account balances into summary addresses
"""

from .tx_decoder import TransactionDecoder, WalletStore, check_raw_transaction
from .envelope_builder import (
    EnvelopeBuilder,
    decode_envelope,
    insert_signature,
    tx_digest
)
from .fee_estimator import FeeEstimator
from .balance_resolver import BalanceResolver
from .address_selector import AddressSelector, Selection
from .summary import SummaryOrchestrator

__all__ = [
    'TransactionDecoder',
    'WalletStore',
    'check_raw_transaction',
    'EnvelopeBuilder',
    'decode_envelope',
    'insert_signature',
    'tx_digest',
    'FeeEstimator',
    'BalanceResolver',
    'AddressSelector',
    'Selection',
    'SummaryOrchestrator'
]
