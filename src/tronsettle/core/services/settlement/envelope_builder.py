"""
Transaction envelope construction.

Builds unsigned TRON transactions for the three supported contract kinds,
binds them to a recent reference block, and provides the wire helpers used
later in the lifecycle: digest recomputation, signature merge and decoding
an envelope back into a readable dict.
"""

import hashlib
import logging
import time
from typing import Any, Callable, Dict, List, Tuple

from google.protobuf.message import DecodeError

from tronsettle.core.config import SettlementConfig
from tronsettle.core.crypto.address_codec import decode_address
from tronsettle.core.errors import (
    EncodingError,
    InvalidRawTransaction,
    NodeRequestError,
    ReferenceBlockUnavailable,
)
from tronsettle.core.models import (
    AssetTransfer,
    ContractPayload,
    ContractTrigger,
    Envelope,
    NativeTransfer,
    ProtocolKind,
    TokenDescriptor,
)
from tronsettle.core.node.client import NodeGateway
from tronsettle.core.services.settlement import tx_proto
from tronsettle.core.services.settlement.abi_codec import (
    SOLIDITY_TYPE_ADDRESS,
    SOLIDITY_TYPE_UINT256,
    TRC20_TRANSFER_METHOD_ID,
    SolidityParam,
    make_transaction_parameter,
)
from tronsettle.core.services.settlement.settlement_utils import to_base_units

logger = logging.getLogger(__name__)

INT64_MAX = 2**63 - 1

AddressDecoder = Callable[[str], Tuple[str, bytes]]


def _check_int64(amount: int) -> int:
    if amount < 0 or amount > INT64_MAX:
        raise EncodingError("amount does not fit in int64", context={"amount": amount})
    return amount


def _encode_payload(payload: ContractPayload) -> Tuple[tx_proto.ContractType, Any]:
    """Map a contract variant to its contract type and protobuf message"""
    if isinstance(payload, NativeTransfer):
        msg = tx_proto.TransferContract(
            owner_address=payload.owner,
            to_address=payload.to,
            amount=_check_int64(payload.amount),
        )
        return tx_proto.ContractType.TransferContract, msg
    if isinstance(payload, AssetTransfer):
        msg = tx_proto.TransferAssetContract(
            asset_name=payload.asset_id.encode("utf-8"),
            owner_address=payload.owner,
            to_address=payload.to,
            amount=_check_int64(payload.amount),
        )
        return tx_proto.ContractType.TransferAssetContract, msg
    if isinstance(payload, ContractTrigger):
        msg = tx_proto.TriggerSmartContract(
            owner_address=payload.owner,
            contract_address=payload.contract_address,
            call_value=_check_int64(payload.call_value),
            data=payload.data,
        )
        return tx_proto.ContractType.TriggerSmartContract, msg
    raise TypeError(f"unsupported contract payload: {type(payload).__name__}")


class EnvelopeBuilder:
    """Assembles and hashes transaction envelopes"""

    def __init__(
        self,
        gateway: NodeGateway,
        settings: SettlementConfig,
        address_decoder: AddressDecoder = decode_address,
        clock: Callable[[], float] = time.time,
    ):
        self.gateway = gateway
        self.settings = settings
        self.decode_address = address_decoder
        self.clock = clock

    def reference_block(self) -> Tuple[bytes, bytes]:
        """Return (ref_block_bytes, ref_block_hash) taken from the current block id"""
        try:
            block = self.gateway.get_now_block()
        except NodeRequestError as e:
            logger.error("get current block failed: %s", e)
            raise ReferenceBlockUnavailable("get current block failed", cause=e)

        block_id = (block or {}).get("blockID") or ""
        try:
            raw_id = bytes.fromhex(block_id)
        except ValueError as e:
            raise ReferenceBlockUnavailable(f"invalid block id: {block_id!r}", cause=e)
        if len(raw_id) < 16:
            raise ReferenceBlockUnavailable(f"invalid block id: {block_id!r}")
        return raw_id[6:8], raw_id[8:16]

    def build_envelope(self, payload: ContractPayload) -> Envelope:
        kind, msg = _encode_payload(payload)

        contract = tx_proto.TransactionContract(type=int(kind))
        contract.parameter.type_url = tx_proto.type_url(kind)
        contract.parameter.value = msg.SerializeToString(deterministic=True)

        ref_block_bytes, ref_block_hash = self.reference_block()
        timestamp = int(self.clock() * 1000)

        raw = tx_proto.TransactionRaw(
            ref_block_bytes=ref_block_bytes,
            ref_block_hash=ref_block_hash,
            expiration=timestamp + self.settings.expiration_ms,
        )
        raw.contract.append(contract)

        if isinstance(payload, ContractTrigger) and self.settings.fee_limit > 0:
            raw.fee_limit = self.settings.fee_limit

        tx = tx_proto.Transaction()
        tx.raw_data.CopyFrom(raw)
        wire = tx.SerializeToString(deterministic=True)
        return Envelope(wire_hex=wire.hex(), digest=raw_digest(raw))

    def create_token_transaction(self, to: str, owner: str, amount: str, token: TokenDescriptor) -> Envelope:
        """Build the unsigned transfer of `amount` (human units) of `token` from owner to `to`"""
        to_hex, to_raw = self.decode_address(to)
        _, owner_raw = self.decode_address(owner)

        if token.protocol is ProtocolKind.NONE:
            payload = NativeTransfer(
                owner=owner_raw,
                to=to_raw,
                amount=to_base_units(amount, self.settings.decimals),
            )
        elif token.protocol is ProtocolKind.TRC10:
            payload = AssetTransfer(
                owner=owner_raw,
                to=to_raw,
                amount=to_base_units(amount, token.decimals),
                asset_id=token.address,
            )
        elif token.protocol is ProtocolKind.TRC20:
            _, contract_raw = self.decode_address(token.address)
            data_hex = make_transaction_parameter(TRC20_TRANSFER_METHOD_ID, [
                SolidityParam(SOLIDITY_TYPE_ADDRESS, to_hex),
                SolidityParam(SOLIDITY_TYPE_UINT256, to_base_units(amount, token.decimals)),
            ])
            payload = ContractTrigger(owner=owner_raw, contract_address=contract_raw, data=bytes.fromhex(data_hex))
        else:
            raise EncodingError(f"{token.protocol} is not supported")

        envelope = self.build_envelope(payload)
        logger.debug("built %s envelope %s: %s -> %s amount %s", token.protocol.value or token.symbol, envelope.txid, owner, to, amount)
        return envelope

    def trigger_constant_contract(self, contract_address: str, function: str, parameter: str, owner: str) -> Dict[str, Any]:
        """Read-only contract call; returns the node's raw response"""
        contract_hex, _ = self.decode_address(contract_address)
        owner_hex, _ = self.decode_address(owner)
        return self.gateway.trigger_constant_contract(contract_hex, function, parameter, owner_hex)


def raw_digest(raw) -> bytes:
    return hashlib.sha256(raw.SerializeToString(deterministic=True)).digest()


def parse_envelope(wire_hex: str):
    try:
        data = bytes.fromhex(wire_hex)
    except (TypeError, ValueError) as e:
        raise InvalidRawTransaction("transaction hex is not valid hex", cause=e)
    tx = tx_proto.Transaction()
    try:
        tx.ParseFromString(data)
    except DecodeError as e:
        raise InvalidRawTransaction("unmarshal transaction failed", cause=e)
    return tx


def tx_digest(wire_hex: str) -> bytes:
    """Transaction id bytes: sha256 over the serialized raw body only"""
    return raw_digest(parse_envelope(wire_hex).raw_data)


def insert_signature(wire_hex: str, signature_hex: str) -> str:
    """Append a signature to the envelope and return the new wire hex"""
    tx = parse_envelope(wire_hex)
    try:
        signature = bytes.fromhex(signature_hex)
    except (TypeError, ValueError) as e:
        raise InvalidRawTransaction("invalid signature hex data", cause=e)
    tx.signature.append(signature)
    return tx.SerializeToString(deterministic=True).hex()


def decode_contract(contract) -> Dict[str, Any]:
    try:
        kind = tx_proto.ContractType(contract.type)
    except ValueError:
        raise InvalidRawTransaction(f"unsupported contract type: {contract.type}")
    msg = tx_proto.PAYLOAD_CLASSES[kind]()
    try:
        msg.ParseFromString(contract.parameter.value)
    except DecodeError as e:
        raise InvalidRawTransaction("unmarshal contract value failed", cause=e)

    value: Dict[str, Any] = {"owner_address": msg.owner_address.hex()}
    if kind is tx_proto.ContractType.TransferContract:
        value.update(to_address=msg.to_address.hex(), amount=msg.amount)
    elif kind is tx_proto.ContractType.TransferAssetContract:
        value.update(
            to_address=msg.to_address.hex(),
            amount=msg.amount,
            asset_name=msg.asset_name.decode("utf-8", errors="replace"),
        )
    else:
        value.update(contract_address=msg.contract_address.hex(), data=msg.data.hex())
        if msg.call_value:
            value["call_value"] = msg.call_value
    return {
        "type": kind.name,
        "parameter": {"type_url": contract.parameter.type_url, "value": value},
    }


def decode_envelope(wire_hex: str) -> Dict[str, Any]:
    """Readable view of an envelope in the shape the node's JSON API uses"""
    tx = parse_envelope(wire_hex)
    raw = tx.raw_data
    raw_data: Dict[str, Any] = {
        "ref_block_bytes": raw.ref_block_bytes.hex(),
        "ref_block_hash": raw.ref_block_hash.hex(),
        "expiration": raw.expiration,
        "contract": [decode_contract(c) for c in raw.contract],
    }
    if raw.timestamp:
        raw_data["timestamp"] = raw.timestamp
    if raw.fee_limit:
        raw_data["fee_limit"] = raw.fee_limit
    return {
        "txID": raw_digest(raw).hex(),
        "raw_data": raw_data,
        "signature": [s.hex() for s in tx.signature],
    }


def contract_owners(wire_hex: str) -> List[str]:
    """Owner address (hex) of each contract entry, in order"""
    decoded = decode_envelope(wire_hex)
    return [c["parameter"]["value"]["owner_address"] for c in decoded["raw_data"]["contract"]]
