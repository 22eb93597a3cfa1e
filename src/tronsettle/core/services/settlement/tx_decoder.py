"""
Transaction Decoder

Build, sign, verify and submit a single transfer, plus the entry points for
batch summary transactions. A RawTransaction moves forward through
built -> signed -> verified -> submitted; every step checks the previous one.
"""

import logging
from decimal import Decimal
from typing import List, Optional, Protocol

from tronsettle.core.config import SettlementConfig, load_config
from tronsettle.core.crypto.address_codec import decode_address
from tronsettle.core.crypto.signer import recover_address, sign_digest
from tronsettle.core.errors import (
    BroadcastError,
    InvalidRawTransaction,
    NoAddressInAccount,
    SignatureEmpty,
    SignatureVerificationFailed,
)
from tronsettle.core.models import (
    Address,
    AssetsAccount,
    KeySignature,
    RawTransaction,
    RawTransactionWithError,
    SummaryRawTransaction,
    Transaction,
    TxFeeInfo,
)
from tronsettle.core.node.client import NodeGateway
from tronsettle.core.services.settlement.abi_codec import decode_revert_message
from tronsettle.core.services.settlement.address_selector import AddressSelector
from tronsettle.core.services.settlement.balance_resolver import BalanceResolver
from tronsettle.core.services.settlement.envelope_builder import (
    EnvelopeBuilder,
    contract_owners,
    insert_signature,
    parse_envelope,
    raw_digest,
    tx_digest,
)
from tronsettle.core.services.settlement.fee_estimator import FeeEstimator
from tronsettle.core.services.settlement.settlement_utils import (
    format_amount,
    gen_transaction_wx_id,
    parse_amount,
)
from tronsettle.core.services.settlement.summary import SummaryOrchestrator

logger = logging.getLogger(__name__)


class WalletStore(Protocol):
    """Wallet-side storage the decoder reads addresses and keys from"""

    def get_address_list(self, account_id: str, offset: int = 0, limit: int = -1) -> List[Address]:
        ...

    def find_address(self, account_id: str, address: str) -> Optional[Address]:
        ...

    def get_address(self, address: str) -> Optional[Address]:
        ...

    def get_assets_account(self, account_id: str) -> Optional[AssetsAccount]:
        ...

    def derive_private_key(self, account: AssetsAccount, path: str, curve: str) -> bytes:
        ...


def check_raw_transaction(raw_tx: RawTransaction) -> None:
    """Account-model transactions carry exactly one destination"""
    if len(raw_tx.to) != 1:
        raise InvalidRawTransaction(
            "only one to address can be set!",
            context={"destinations": len(raw_tx.to)},
        )


class TransactionDecoder:
    """Public lifecycle for TRX, TRC10 and TRC20 transfers"""

    def __init__(
        self,
        wallet: WalletStore,
        gateway: NodeGateway,
        settings: SettlementConfig | None = None,
        address_decoder=decode_address,
    ):
        self.wallet = wallet
        self.gateway = gateway
        self.settings = settings or load_config()
        self.builder = EnvelopeBuilder(gateway, self.settings, address_decoder)
        self.estimator = FeeEstimator(gateway, self.settings, address_decoder)
        self.resolver = BalanceResolver(gateway, self.builder, self.settings, address_decoder)
        self.selector = AddressSelector(wallet, self.resolver, self.builder, self.estimator, self.settings)
        self.summary = SummaryOrchestrator(self)

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def create_raw_transaction(self, raw_tx: RawTransaction) -> None:
        check_raw_transaction(raw_tx)
        if raw_tx.token.is_contract:
            self.create_token_transaction(raw_tx)
        else:
            self.create_simple_transaction(raw_tx)

    def create_simple_transaction(self, raw_tx: RawTransaction) -> None:
        to, amount = raw_tx.destination()
        selection = self.selector.select_for_native(raw_tx.account, to, amount, raw_tx.token)
        raw_tx.raw_hex = selection.envelope.wire_hex
        self.finalize_raw_transaction(raw_tx, selection.candidate.address, selection.fee_info)

    def create_token_transaction(self, raw_tx: RawTransaction) -> None:
        to, amount = raw_tx.destination()
        selection = self.selector.select_for_token(raw_tx.account, to, amount, raw_tx.token)
        raw_tx.raw_hex = selection.envelope.wire_hex
        self.finalize_raw_transaction(raw_tx, selection.candidate.address, selection.fee_info)

    def finalize_raw_transaction(self, raw_tx: RawTransaction, from_address: str, fee_info: TxFeeInfo) -> None:
        """Fill in the pending signature, fees and accounting of a built envelope"""
        decimals = raw_tx.token.decimals if raw_tx.token.is_contract else self.settings.decimals
        destination, amount = raw_tx.destination()

        # Moving funds between the account's own addresses costs only the fee
        account_total_sent = Decimal(0)
        if self.wallet.find_address(raw_tx.account.account_id, destination) is None:
            account_total_sent += parse_amount(amount)

        addr = self.wallet.get_address(from_address)
        if addr is None:
            raise NoAddressInAccount(
                f"address {from_address} not found in wallet",
                context={"address": from_address, "account_id": raw_tx.account.account_id},
            )

        tx_hash = tx_digest(raw_tx.raw_hex).hex()
        raw_tx.signatures[raw_tx.account.account_id] = [
            KeySignature(ecc_type=self.settings.curve_type, address=addr, message=tx_hash),
        ]

        # Fees are paid in TRX, so only a TRX transfer counts them in its net amount
        if not raw_tx.token.is_contract:
            account_total_sent += fee_info.fee
        raw_tx.fee_rate = str(fee_info.gas_price)
        raw_tx.fees = str(fee_info.fee)
        raw_tx.tx_amount = format_amount(Decimal(0) - account_total_sent, decimals)
        raw_tx.tx_from = [f"{from_address}:{amount}"]
        raw_tx.tx_to = [f"{destination}:{amount}"]
        raw_tx.is_built = True

        logger.info("built transaction %s: %s -> %s amount %s fees %s", tx_hash, from_address, destination, amount, raw_tx.fees)

    # ------------------------------------------------------------------
    # Sign / verify / submit
    # ------------------------------------------------------------------

    def sign_raw_transaction(self, raw_tx: RawTransaction) -> None:
        """Sign every pending KeySignature of the transaction's account"""
        if not raw_tx.is_built:
            raise InvalidRawTransaction("transaction is not built")
        if raw_tx.is_completed or raw_tx.is_submit:
            raise InvalidRawTransaction(
                "transaction is already verified", context={"state": raw_tx.state.value})
        key_signatures = raw_tx.pending_signatures()
        if not key_signatures:
            raise SignatureEmpty("transaction signature is empty")

        for key_signature in key_signatures:
            private_key = self.wallet.derive_private_key(
                raw_tx.account, key_signature.address.hd_path, self.settings.curve_type)
            key_signature.signature = sign_digest(key_signature.message, private_key, self.settings.curve_type)

        logger.info("Tx hash sign success: %s", key_signatures[0].message)

    def _first_signature(self, raw_tx: RawTransaction) -> str:
        if not raw_tx.signatures:
            raise SignatureEmpty("transaction signature is empty")
        if raw_tx.account.account_id not in raw_tx.signatures:
            raise SignatureEmpty("wallet signature not found")
        sigs = raw_tx.signatures[raw_tx.account.account_id]
        if not sigs or not sigs[0].signature:
            raise SignatureEmpty("transaction signature is empty")
        return sigs[0].signature

    def valid_signed_transaction(self, wire_hex: str) -> None:
        """Every contract's owner must be the signer recovered from its signature"""
        tx = parse_envelope(wire_hex)
        if not tx.signature:
            raise SignatureEmpty("not found signature")
        digest = raw_digest(tx.raw_data)
        owners = contract_owners(wire_hex)
        for i, owner in enumerate(owners):
            if i >= len(tx.signature):
                raise SignatureVerificationFailed(f"contract {i} has no signature")
            signer = recover_address(digest, tx.signature[i])
            if signer != owner.lower():
                raise SignatureVerificationFailed(
                    "signed address is not the owner address",
                    context={"signer": signer, "owner": owner},
                )

    def verify_raw_transaction(self, raw_tx: RawTransaction) -> None:
        check_raw_transaction(raw_tx)
        signature = self._first_signature(raw_tx)
        merged = insert_signature(raw_tx.raw_hex, signature)
        try:
            self.valid_signed_transaction(merged)
        except SignatureVerificationFailed as e:
            logger.error("Tx signature verify failed: %s", e)
            raise
        raw_tx.is_completed = True
        logger.info("Tx signature verified: %s", raw_tx.pending_signatures()[0].message)

    def broadcast_transaction(self, wire_hex: str) -> str:
        """Broadcast a signed envelope; returns the transaction id"""
        txid = tx_digest(wire_hex).hex()
        resp = self.gateway.broadcast_hex(wire_hex)
        if resp.get("result") is not True:
            message = resp.get("message") or ""
            if message:
                err = f"BroadcastTransaction error message: {decode_revert_message(message)}"
            else:
                err = f"BroadcastTransaction return error: {resp}"
            logger.error("broadcast %s failed: %s", txid, err)
            raise BroadcastError(err, context={"txid": txid, "code": resp.get("code")})
        logger.info("broadcast transaction %s", txid)
        return txid

    def submit_raw_transaction(self, raw_tx: RawTransaction) -> Transaction:
        if not raw_tx.raw_hex:
            raise InvalidRawTransaction("transaction hex is empty")
        if not raw_tx.is_completed:
            raise InvalidRawTransaction("transaction is not completed validation")
        if raw_tx.is_submit:
            raise InvalidRawTransaction("transaction already submitted", context={"txid": raw_tx.tx_id})

        signature = self._first_signature(raw_tx)
        merged = insert_signature(raw_tx.raw_hex, signature)

        raw_tx.tx_id = self.broadcast_transaction(merged)
        raw_tx.raw_hex = merged
        raw_tx.is_submit = True

        tx = Transaction(
            tx_id=raw_tx.tx_id,
            account_id=raw_tx.account.account_id,
            token=raw_tx.token,
            tx_from=raw_tx.tx_from,
            tx_to=raw_tx.tx_to,
            amount=raw_tx.tx_amount,
            fees=raw_tx.fees,
            decimals=self.settings.decimals,
        )
        tx.wx_id = gen_transaction_wx_id(tx.tx_id, raw_tx.token.symbol, raw_tx.token.address)
        return tx

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------

    def create_summary_raw_transaction(self, sum_raw_tx: SummaryRawTransaction) -> List[RawTransaction]:
        """Summary legs that were built successfully"""
        return [r.raw_tx for r in self.create_summary_raw_transaction_with_error(sum_raw_tx) if r.error is None]

    def create_summary_raw_transaction_with_error(self, sum_raw_tx: SummaryRawTransaction) -> List[RawTransactionWithError]:
        """Every summary leg, each with the error that stopped it (if any)"""
        if sum_raw_tx.token.is_contract:
            return self.summary.create_token_summary(sum_raw_tx)
        return self.summary.create_simple_summary(sum_raw_tx)
