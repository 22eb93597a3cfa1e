"""
Resource and fee estimation

Plain transfers pay in bandwidth: free while the staked or the daily free
allowance lasts, otherwise burned at bandwidth_price SUN per byte. Contract
calls pay in energy, which an address may cover with staked energy or by
burning TRX at energy_price SUN per unit.
"""

import logging
from decimal import Decimal
from typing import Tuple

from tronsettle.core.config import SettlementConfig
from tronsettle.core.crypto.address_codec import decode_address
from tronsettle.core.errors import SettlementError
from tronsettle.core.models import TxFeeInfo
from tronsettle.core.node.client import NodeGateway
from tronsettle.core.services.settlement.settlement_utils import sun_to_trx

logger = logging.getLogger(__name__)


class FeeEstimator:
    def __init__(self, gateway: NodeGateway, settings: SettlementConfig, address_decoder=decode_address):
        self.gateway = gateway
        self.settings = settings
        self.decode_address = address_decoder

    def get_transaction_fee_estimated(self, from_address: str, wire_hex: str) -> TxFeeInfo:
        """
        Estimate the bandwidth fee of an envelope sent from `from_address`

        Returns:
            TxFeeInfo with gas_used in bytes, gas_price and fee in TRX.
            All zero while the address still has bandwidth to spend.
        """
        fee_info = TxFeeInfo(gas_used=0, gas_price=Decimal(0), fee=Decimal(0))

        address_hex, _ = self.decode_address(from_address)
        net = self.gateway.get_account_net(address_hex)

        net_used = int(net.get("NetUsed", 0) or 0)
        net_limit = int(net.get("NetLimit", 0) or 0)
        free_used = int(net.get("freeNetUsed", 0) or 0)
        free_limit = int(net.get("freeNetLimit", 0) or 0)

        # Staked bandwidth first, then the free allowance
        if net_used >= net_limit and free_used >= free_limit:
            fee_info.gas_used = len(wire_hex) // 2
            fee_info.gas_price = sun_to_trx(self.settings.bandwidth_price, self.settings.decimals)
            fee_info.calc_fee()

        logger.debug(
            "fee estimate for %s: net %s/%s free %s/%s -> %s bytes, fee %s",
            from_address, net_used, net_limit, free_used, free_limit, fee_info.gas_used, fee_info.fee,
        )
        return fee_info

    def is_enough_energy_to_call_contract(self, address: str, trx_balance_sun: int) -> Tuple[bool, int, int]:
        """
        Check whether `address` can afford a contract call

        Available energy is the unspent staked energy plus what the TRX
        balance could buy. Never raises; a failed lookup reports "not enough".

        Returns:
            (sufficient, energy_rest, fee_mini)
        """
        fee_mini = self.settings.fee_mini
        try:
            address_hex, _ = self.decode_address(address)
            res = self.gateway.get_account_resource(address_hex)
        except SettlementError as e:
            logger.warning("get account resource of %s failed: %s", address, e)
            return False, 0, fee_mini

        energy_rest = int(res.get("EnergyLimit", 0) or 0) - int(res.get("EnergyUsed", 0) or 0)
        energy_rest += int(trx_balance_sun) // self.settings.energy_price

        if energy_rest < fee_mini:
            return False, energy_rest, fee_mini
        return True, energy_rest, fee_mini

    def support_fee(self) -> Decimal:
        """Native coin needed to buy fee_mini energy outright"""
        return sun_to_trx(self.settings.fee_mini * self.settings.energy_price, self.settings.decimals)
