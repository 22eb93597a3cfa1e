"""
Summary (consolidation) transactions

Sweeps the balance of every address in an account to one summary address.
Each address becomes one leg of the batch; a leg that cannot be built is
returned with its error instead of stopping the rest. When an address is
short of TRX or energy and a fee-support account is configured, the leg is
replaced by a TRX transfer from that account so a later run can sweep it.
"""

import logging
from decimal import ROUND_UP, Decimal
from typing import List, Optional

from tronsettle.core.errors import (
    AccountNotFound,
    EncodingError,
    InsufficientFees,
    InvalidSummaryRequest,
    SettlementError,
    convert_error,
)
from tronsettle.core.models import (
    AssetsAccount,
    CandidateBalance,
    FeesSupportAccount,
    ProtocolKind,
    RawTransaction,
    RawTransactionWithError,
    SummaryRawTransaction,
    TokenDescriptor,
)
from tronsettle.core.services.settlement.settlement_utils import (
    format_amount,
    from_base_units,
    parse_decimal,
    to_base_units,
)

logger = logging.getLogger(__name__)


class SummaryOrchestrator:
    """Builds summary legs through a TransactionDecoder"""

    def __init__(self, decoder):
        self.decoder = decoder
        self.settings = decoder.settings

    def _thresholds(self, sum_raw_tx: SummaryRawTransaction, decimals: int) -> tuple[int, int]:
        """(min_transfer, retained_balance) in base units.

        A min_transfer below retained_balance is allowed; addresses whose
        balance does not exceed the retained floor simply yield no leg.
        """
        context = {"min_transfer": sum_raw_tx.min_transfer, "retained_balance": sum_raw_tx.retained_balance}
        try:
            min_transfer = to_base_units(sum_raw_tx.min_transfer or "0", decimals)
            retained_balance = to_base_units(sum_raw_tx.retained_balance or "0", decimals)
        except EncodingError as e:
            raise InvalidSummaryRequest(f"invalid summary thresholds: {e}", context=context, cause=e)
        if min_transfer < 0 or retained_balance < 0:
            raise InvalidSummaryRequest("summary thresholds must not be negative", context=context)
        return min_transfer, retained_balance

    def _addresses(self, sum_raw_tx: SummaryRawTransaction) -> List[str]:
        return self.decoder.selector.account_addresses(
            sum_raw_tx.account, sum_raw_tx.address_start_index, sum_raw_tx.address_limit)

    def _fees_support_account(self, sum_raw_tx: SummaryRawTransaction) -> Optional[AssetsAccount]:
        support = sum_raw_tx.fees_support_account
        if support is None:
            return None
        try:
            account = self.decoder.wallet.get_assets_account(support.account_id)
        except SettlementError as e:
            raise AccountNotFound("can not find fees support account", context={"account_id": support.account_id}, cause=e)
        if account is None:
            raise AccountNotFound("can not find fees support account", context={"account_id": support.account_id})
        return account

    def support_amount(self, support: FeesSupportAccount) -> Decimal:
        """TRX sent to a starved address: fixed amount, else scale x fee, else the fee"""
        fees = self.decoder.estimator.support_fee()
        fix_support_amount = parse_decimal(support.fix_support_amount)
        fees_support_scale = parse_decimal(support.fees_support_scale)

        if fix_support_amount > 0:
            return fix_support_amount
        if fees_support_scale > 0:
            step = Decimal(1).scaleb(-self.settings.decimals)
            return (fees_support_scale * fees).quantize(step, rounding=ROUND_UP)
        return fees

    def _leg(self, raw_tx: RawTransaction, from_address: str, fee_info) -> RawTransactionWithError:
        try:
            self.decoder.finalize_raw_transaction(raw_tx, from_address, fee_info)
        except SettlementError as e:
            return RawTransactionWithError(raw_tx=raw_tx, error=e)
        return RawTransactionWithError(raw_tx=raw_tx)

    # ------------------------------------------------------------------
    # TRX
    # ------------------------------------------------------------------

    def create_simple_summary(self, sum_raw_tx: SummaryRawTransaction) -> List[RawTransactionWithError]:
        decimals = self.settings.decimals
        min_transfer, retained_balance = self._thresholds(sum_raw_tx, decimals)
        addresses = self._addresses(sum_raw_tx)

        resolver = self.decoder.resolver
        balances = resolver.get_trx_balances(*addresses)
        exist = resolver.account_exists(sum_raw_tx.summary_address)

        legs = []
        for balance in balances:
            if balance.tron_balance < min_transfer or balance.tron_balance <= 0:
                continue
            try:
                leg = self._simple_leg(sum_raw_tx, balance, retained_balance, exist)
            except SettlementError as e:
                logger.error("summary from %s failed: %s", balance.address, e)
                leg = RawTransactionWithError(raw_tx=None, error=e)
            if leg is not None:
                legs.append(leg)
        return legs

    def _simple_leg(self, sum_raw_tx, balance: CandidateBalance, retained_balance: int, exist: bool):
        decimals = self.settings.decimals
        builder = self.decoder.builder
        to = sum_raw_tx.summary_address

        sum_units = balance.tron_balance - retained_balance
        if not exist:
            sum_units -= self.settings.create_account_cost
        if sum_units <= 0:
            logger.debug("skip %s: nothing left to sweep after reserves", balance.address)
            return None

        sum_amount = format_amount(from_base_units(sum_units, decimals), decimals)
        envelope = builder.create_token_transaction(to, balance.address, sum_amount, sum_raw_tx.token)
        fee_info = self.decoder.estimator.get_transaction_fee_estimated(balance.address, envelope.wire_hex)

        logger.debug("balance: %s", balance.balance)
        logger.debug("fees: %s", fee_info.fee)
        logger.debug("sumAmount: %s", sum_amount)

        raw_tx = RawTransaction(
            account=sum_raw_tx.account,
            to={to: sum_amount},
            token=sum_raw_tx.token,
            raw_hex=envelope.wire_hex,
            required=1,
        )
        return self._leg(raw_tx, balance.address, fee_info)

    # ------------------------------------------------------------------
    # TRC10 / TRC20
    # ------------------------------------------------------------------

    def create_token_summary(self, sum_raw_tx: SummaryRawTransaction) -> List[RawTransactionWithError]:
        token = sum_raw_tx.token
        support_account = self._fees_support_account(sum_raw_tx)
        min_transfer, retained_balance = self._thresholds(sum_raw_tx, token.decimals)
        addresses = self._addresses(sum_raw_tx)

        resolver = self.decoder.resolver
        exist = resolver.account_exists(sum_raw_tx.summary_address)
        balances = resolver.get_token_balances(token, *addresses)

        legs = []
        for balance in balances:
            if balance.token_balance < min_transfer or balance.token_balance <= 0:
                continue
            try:
                leg, exist = self._token_leg(sum_raw_tx, balance, retained_balance, support_account, exist)
            except SettlementError as e:
                logger.error("summary from %s failed: %s", balance.address, e)
                leg = RawTransactionWithError(raw_tx=None, error=e)
            if leg is not None:
                legs.append(leg)
        return legs

    def _token_leg(self, sum_raw_tx, balance: CandidateBalance, retained_balance: int,
                   support_account: Optional[AssetsAccount], exist: bool) -> tuple[Optional[RawTransactionWithError], bool]:
        """One token leg; also returns whether the summary address now counts as existing"""
        token = sum_raw_tx.token
        to = sum_raw_tx.summary_address
        decoder = self.decoder

        sum_units = balance.token_balance - retained_balance
        if sum_units <= 0:
            logger.debug("skip %s: balance does not exceed the retained floor", balance.address)
            return None, exist

        sum_amount = format_amount(from_base_units(sum_units, token.decimals), token.decimals)
        envelope = decoder.builder.create_token_transaction(to, balance.address, sum_amount, token)
        fee_info = decoder.estimator.get_transaction_fee_estimated(balance.address, envelope.wire_hex)

        trx_balance = decoder.resolver.get_trx_balances(balance.address)[0].tron_balance
        if not exist:
            trx_balance -= self.settings.create_account_cost

        support_address = ""
        if token.protocol is ProtocolKind.TRC20:
            enough, energy_rest, fee_mini = decoder.estimator.is_enough_energy_to_call_contract(
                balance.address, trx_balance)
            if not enough:
                msg = f"address[{balance.address}] available energy: {energy_rest} is less than feeMini: {fee_mini}"
                logger.debug(msg)
                if support_account is None:
                    error = InsufficientFees(msg, context={"address": balance.address, "energy": energy_rest})
                    return RawTransactionWithError(raw_tx=None, error=error), exist
                support_address = balance.address
        elif trx_balance < 0:
            if support_account is None:
                error = InsufficientFees(
                    f"address[{balance.address}] {self.settings.symbol} balance cannot pay to create [{to}]",
                    context={"address": balance.address, "to": to},
                )
                return RawTransactionWithError(raw_tx=None, error=error), exist
            support_address = to
            # The support transfer activates the summary address
            exist = True

        if support_address:
            return self._fees_support_leg(sum_raw_tx, support_account, support_address), exist

        logger.debug("balance: %s", balance.balance)
        logger.debug("fees: %s", fee_info.fee)
        logger.debug("sumAmount: %s", sum_amount)

        raw_tx = RawTransaction(
            account=sum_raw_tx.account,
            to={to: sum_amount},
            token=token,
            raw_hex=envelope.wire_hex,
            required=1,
        )
        balance.tron_balance = trx_balance
        return self._leg(raw_tx, balance.address, fee_info), exist

    def _fees_support_leg(self, sum_raw_tx, support_account: AssetsAccount, support_address: str) -> RawTransactionWithError:
        support_amount = self.support_amount(sum_raw_tx.fees_support_account)

        logger.debug("create transaction for fees support account")
        logger.debug("fees account: %s", support_account.account_id)
        logger.debug("mini support amount: %s", self.decoder.estimator.support_fee())
        logger.debug("allow support amount: %s", support_amount)
        logger.debug("support address: %s", support_address)

        raw_tx = RawTransaction(
            account=support_account,
            to={support_address: str(support_amount)},
            token=TokenDescriptor.native(self.settings.symbol, self.settings.decimals),
            required=1,
        )
        try:
            self.decoder.create_raw_transaction(raw_tx)
        except (SettlementError, LookupError) as e:  # LookupError from the wallet store
            return RawTransactionWithError(raw_tx=raw_tx, error=convert_error(e))
        return RawTransactionWithError(raw_tx=raw_tx)
