"""
Balance lookups for TRX, TRC10 and TRC20 holdings
"""

import logging
from decimal import Decimal
from typing import Any, Callable, Dict, List

from tronsettle.core.config import SettlementConfig
from tronsettle.core.crypto.address_codec import decode_address
from tronsettle.core.errors import ContractCallError, EncodingError, SettlementError
from tronsettle.core.models import CandidateBalance, ProtocolKind, TokenDescriptor
from tronsettle.core.node.client import NodeGateway
from tronsettle.core.services.settlement.abi_codec import (
    SOLIDITY_TYPE_ADDRESS,
    TRC20_BALANCE_OF_METHOD,
    SolidityParam,
    decode_revert_message,
    decode_uint256,
    make_transaction_parameter,
)
from tronsettle.core.services.settlement.envelope_builder import EnvelopeBuilder
from tronsettle.core.services.settlement.settlement_utils import from_base_units

logger = logging.getLogger(__name__)


def _asset_amount(asset_v2: Any, token_id: str) -> int:
    """assetV2 comes back as [{"key": id, "value": n}, ...] or as a plain mapping"""
    if isinstance(asset_v2, dict):
        return int(asset_v2.get(token_id, 0) or 0)
    for item in asset_v2 or []:
        if str(item.get("key")) == token_id:
            return int(item.get("value", 0) or 0)
    return 0


class BalanceResolver:
    """Resolves balances by token protocol; each lookup gets one retry"""

    def __init__(
        self,
        gateway: NodeGateway,
        builder: EnvelopeBuilder,
        settings: SettlementConfig,
        address_decoder=decode_address,
    ):
        self.gateway = gateway
        self.builder = builder
        self.settings = settings
        self.decode_address = address_decoder

    def _with_retry(self, fn: Callable, *args):
        try:
            return fn(*args)
        except SettlementError as e:
            logger.warning("%s%s failed, retrying once: %s", fn.__name__, args, e)
        return fn(*args)

    def _account(self, address: str) -> tuple[Dict[str, Any], bool]:
        address_hex, _ = self.decode_address(address)
        return self.gateway.get_account(address_hex)

    def account_exists(self, address: str) -> bool:
        """True if the address has been activated on chain"""
        _, exist = self._with_retry(self._account, address)
        return exist

    def get_trx_balance(self, address: str) -> int:
        """TRX balance in SUN (0 for an inactive account)"""
        account, _ = self._account(address)
        return int(account.get("balance", 0) or 0)

    def get_trc10_balance(self, address: str, token_id: str) -> int:
        account, _ = self._account(address)
        return _asset_amount(account.get("assetV2"), token_id)

    def get_trc20_balance(self, address: str, contract_address: str) -> int:
        owner_hex, _ = self.decode_address(address)
        param = make_transaction_parameter("", [SolidityParam(SOLIDITY_TYPE_ADDRESS, owner_hex)])
        resp = self.builder.trigger_constant_contract(contract_address, TRC20_BALANCE_OF_METHOD, param, address)

        constant_result = resp.get("constant_result") or []
        if constant_result:
            try:
                return decode_uint256(constant_result[0])
            except EncodingError as e:
                raise ContractCallError(f"balanceOf returned malformed data for {address}", cause=e)

        result = resp.get("result") or {}
        revert = decode_revert_message(result.get("message", ""))
        raise ContractCallError(
            f"balanceOf({address}) on {contract_address} failed: {revert or 'no result'}",
            revert_message=revert,
            context={"address": address, "contract": contract_address},
        )

    def get_balance_base_units(self, address: str, token: TokenDescriptor) -> int:
        if token.protocol is ProtocolKind.TRC20:
            return self._with_retry(self.get_trc20_balance, address, token.address)
        if token.protocol is ProtocolKind.TRC10:
            return self._with_retry(self.get_trc10_balance, address, token.address)
        return self._with_retry(self.get_trx_balance, address)

    def get_balance(self, address: str, token: TokenDescriptor) -> Decimal:
        """Balance of `token` held by `address`, in human units"""
        decimals = token.decimals if token.is_contract else self.settings.decimals
        return from_base_units(self.get_balance_base_units(address, token), decimals)

    def get_trx_balances(self, *addresses: str) -> List[CandidateBalance]:
        """TRX balances of several addresses; any lookup failure propagates"""
        out = []
        for i, address in enumerate(addresses):
            sun = self._with_retry(self.get_trx_balance, address)
            out.append(CandidateBalance(
                address=address,
                balance=from_base_units(sun, self.settings.decimals),
                tron_balance=sun,
                index=i,
            ))
        return out

    def get_token_balances(self, token: TokenDescriptor, *addresses: str) -> List[CandidateBalance]:
        """Token balances of several addresses.

        A lookup that still fails after its retry is logged and reported as
        zero so one bad address does not hide the rest.
        """
        if not token.is_contract:
            return self.get_trx_balances(*addresses)

        out = []
        for i, address in enumerate(addresses):
            try:
                amount = self.get_balance_base_units(address, token)
            except SettlementError as e:
                logger.error("get address[%s] token balance failed: %s", address, e)
                amount = 0
            out.append(CandidateBalance(
                address=address,
                balance=from_base_units(amount, token.decimals),
                token_balance=amount,
                index=i,
            ))
        return out
