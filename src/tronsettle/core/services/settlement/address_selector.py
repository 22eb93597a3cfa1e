"""
Funding address selection

Given an account with many addresses, find one that can pay a transfer:
enough of the coin being moved, enough TRX for fees and for activating
a fresh destination, and for TRC20 enough energy to run the contract.
"""

import logging
from dataclasses import dataclass
from typing import List

from tronsettle.core.config import SettlementConfig
from tronsettle.core.errors import (
    InsufficientBalance,
    InsufficientFees,
    InsufficientTokenBalance,
    NoAddressInAccount,
    SettlementError,
)
from tronsettle.core.models import (
    AssetsAccount,
    CandidateBalance,
    Envelope,
    ProtocolKind,
    TokenDescriptor,
    TxFeeInfo,
)
from tronsettle.core.services.settlement.balance_resolver import BalanceResolver
from tronsettle.core.services.settlement.envelope_builder import EnvelopeBuilder
from tronsettle.core.services.settlement.fee_estimator import FeeEstimator
from tronsettle.core.services.settlement.settlement_utils import parse_amount, sun_to_trx

logger = logging.getLogger(__name__)


@dataclass
class Selection:
    """The chosen funding address with its trial envelope and fee"""
    candidate: CandidateBalance
    envelope: Envelope
    fee_info: TxFeeInfo


def sort_candidates(candidates: List[CandidateBalance]) -> List[CandidateBalance]:
    # Ascending: the smallest balance that can cover the transfer is spent first
    return sorted(candidates, key=lambda c: c.balance)


class AddressSelector:
    def __init__(
        self,
        wallet,
        resolver: BalanceResolver,
        builder: EnvelopeBuilder,
        estimator: FeeEstimator,
        settings: SettlementConfig,
    ):
        self.wallet = wallet
        self.resolver = resolver
        self.builder = builder
        self.estimator = estimator
        self.settings = settings

    def account_addresses(self, account: AssetsAccount, offset: int = 0, limit: int = -1) -> List[str]:
        addresses = self.wallet.get_address_list(account.account_id, offset, limit)
        if not addresses:
            raise NoAddressInAccount(
                f"[{account.account_id}] have not addresses",
                context={"account_id": account.account_id},
            )
        return [a.address for a in addresses]

    def select(self, account: AssetsAccount, to: str, amount: str, token: TokenDescriptor) -> Selection:
        if token.is_contract:
            return self.select_for_token(account, to, amount, token)
        return self.select_for_native(account, to, amount, token)

    def _estimate(self, address: str, to: str, envelope: Envelope):
        try:
            return self.estimator.get_transaction_fee_estimated(address, envelope.wire_hex)
        except SettlementError as e:
            logger.error("fee estimate from[%s] -> to[%s] failed: %s", address, to, e)
            return None

    def select_for_native(self, account: AssetsAccount, to: str, amount: str, token: TokenDescriptor) -> Selection:
        amount_dec = parse_amount(amount)
        candidates = sort_candidates(self.resolver.get_trx_balances(*self.account_addresses(account)))
        exist = self.resolver.account_exists(to)
        create_cost = sun_to_trx(self.settings.create_account_cost, self.settings.decimals)

        for candidate in candidates:
            envelope = self.builder.create_token_transaction(to, candidate.address, amount, token)
            fee_info = self._estimate(candidate.address, to, envelope)
            if fee_info is None:
                continue

            total_cost = amount_dec + fee_info.fee
            if not exist:
                total_cost += create_cost

            logger.debug("candidate %s balance %s needs %s", candidate.address, candidate.balance, total_cost)
            if candidate.balance < total_cost:
                continue
            return Selection(candidate, envelope, fee_info)

        symbol = token.symbol or self.settings.symbol
        if exist:
            msg = "the balance is not enough"
        else:
            msg = f"the balance is not enough, [{to}] is not exist should cost {create_cost} {symbol} to create"
        raise InsufficientBalance(msg, context={"to": to, "amount": amount})

    def select_for_token(self, account: AssetsAccount, to: str, amount: str, token: TokenDescriptor) -> Selection:
        amount_dec = parse_amount(amount)
        candidates = sort_candidates(self.resolver.get_token_balances(token, *self.account_addresses(account)))
        exist = self.resolver.account_exists(to)

        token_balance_not_enough = False
        balance_not_enough = False
        err_str = ""

        for candidate in candidates:
            envelope = self.builder.create_token_transaction(to, candidate.address, amount, token)
            fee_info = self._estimate(candidate.address, to, envelope)
            if fee_info is None:
                continue

            trx_balance = self.resolver.get_trx_balances(candidate.address)[0].tron_balance

            if candidate.balance < amount_dec:
                token_balance_not_enough = True
                continue

            if not exist:
                trx_balance -= self.settings.create_account_cost

            if trx_balance < 0:
                balance_not_enough = True
                err_str = (
                    f"the {self.settings.symbol} balance is not enough, [{to}] is not exist "
                    f"should cost {sun_to_trx(self.settings.create_account_cost)} {self.settings.symbol} to create"
                )
                continue

            if token.protocol is ProtocolKind.TRC20:
                enough, energy_rest, fee_mini = self.estimator.is_enough_energy_to_call_contract(
                    candidate.address, trx_balance)
                if not enough:
                    balance_not_enough = True
                    err_str = f"address[{candidate.address}] available energy: {energy_rest} is less than feeMini: {fee_mini}"
                    continue

            candidate.tron_balance = trx_balance
            return Selection(candidate, envelope, fee_info)

        if balance_not_enough and not token_balance_not_enough:
            raise InsufficientFees(err_str, context={"to": to, "amount": amount})
        raise InsufficientTokenBalance(
            f"the balance: {amount} is not enough",
            context={"to": to, "amount": amount, "token": token.symbol},
        )
