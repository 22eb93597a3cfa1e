"""
TRON full node HTTP access.

NodeClient.call is the transport capability the settlement core consumes:
POST a flat JSON body to an endpoint, local node first with remote fallback.
NodeGateway wraps it with the handful of wallet endpoints the core needs.
"""

import logging
from typing import Any, Dict, Optional, Protocol, Tuple

import requests

from tronsettle.core.config import SettlementConfig, load_config
from tronsettle.core.errors import NodeRequestError

logger = logging.getLogger(__name__)


class NodeCaller(Protocol):
    def call(self, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        ...


class NodeClient:
    """HTTP caller: local-first, remote fallback"""

    def __init__(self, settings: SettlementConfig | None = None, session: requests.Session | None = None):
        self.settings = settings or load_config()
        self.session = session or requests.Session()

    def call(self, endpoint: str, params: Dict[str, Any] | None = None) -> Dict[str, Any]:
        bases = self.settings.get_node_bases()
        if not bases:
            raise NodeRequestError("no TRON node endpoint configured", context={"endpoint": endpoint})

        headers = {"Content-Type": "application/json"}
        last_error: Optional[str] = None
        for base in bases:
            url = f"{base}{endpoint}"
            rh = dict(headers)
            if base != self.settings.local_full_node.rstrip("/") and self.settings.api_key:
                rh["TRON-PRO-API-KEY"] = self.settings.api_key
            try:
                resp = self.session.post(url, json=params or {}, headers=rh, timeout=self.settings.request_timeout)
            except requests.RequestException as e:
                last_error = str(e)
                logger.warning("TRON node %s unreachable: %s", url, e)
                continue
            if not resp.ok:
                last_error = f"HTTP {resp.status_code}: {resp.text[:120]}"
                logger.warning("TRON node %s returned %s", url, last_error)
                continue
            try:
                return resp.json() or {}
            except ValueError:
                raise NodeRequestError(
                    f"non-JSON response from {url}",
                    context={"endpoint": endpoint, "body": resp.text[:120]},
                )

        raise NodeRequestError(
            f"all TRON node endpoints failed for {endpoint}: {last_error}",
            context={"endpoint": endpoint},
        )


class NodeGateway:
    """Typed access to the wallet endpoints used by the settlement core.

    Addresses are passed to the node in 41-prefixed hex form.
    """

    def __init__(self, caller: NodeCaller):
        self.caller = caller

    def get_now_block(self) -> Dict[str, Any]:
        return self.caller.call("/wallet/getnowblock", {})

    def get_account(self, address_hex: str) -> Tuple[Dict[str, Any], bool]:
        """Return (account, exists); a missing account comes back as an empty object"""
        r = self.caller.call("/wallet/getaccount", {"address": address_hex})
        account = r or {}
        return account, bool(account.get("address"))

    def get_account_net(self, address_hex: str) -> Dict[str, Any]:
        return self.caller.call("/wallet/getaccountnet", {"address": address_hex}) or {}

    def get_account_resource(self, address_hex: str) -> Dict[str, Any]:
        return self.caller.call("/wallet/getaccountresource", {"address": address_hex}) or {}

    def trigger_smart_contract(
        self,
        contract_address: str,
        function: str,
        parameter: str,
        owner_address: str,
        fee_limit: int = 0,
        call_value: int = 0,
    ) -> Dict[str, Any]:
        params = {
            "contract_address": contract_address,
            "function_selector": function,
            "parameter": parameter,
            "fee_limit": fee_limit,
            "call_value": call_value,
            "owner_address": owner_address,
        }
        return self.caller.call("/wallet/triggersmartcontract", params) or {}

    def trigger_constant_contract(
        self,
        contract_address: str,
        function: str,
        parameter: str,
        owner_address: str,
    ) -> Dict[str, Any]:
        params = {
            "contract_address": contract_address,
            "function_selector": function,
            "parameter": parameter,
            "owner_address": owner_address,
        }
        return self.caller.call("/wallet/triggerconstantcontract", params) or {}

    def get_contract(self, contract_hex: str) -> Dict[str, Any]:
        return self.caller.call("/wallet/getcontract", {"value": contract_hex}) or {}

    def broadcast_hex(self, wire_hex: str) -> Dict[str, Any]:
        return self.caller.call("/wallet/broadcasthex", {"transaction": wire_hex}) or {}
