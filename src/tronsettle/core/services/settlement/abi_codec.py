"""
ABI encoding of contract call parameters (address, uint256) and decoding
of constant-call results.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List

from eth_abi.exceptions import DecodingError
from eth_abi.exceptions import EncodingError as AbiEncodingError
from tronpy.abi import trx_abi

from tronsettle.core.errors import EncodingError

logger = logging.getLogger(__name__)

TRC20_BALANCE_OF_METHOD = "balanceOf(address)"
TRC20_TRANSFER_METHOD_ID = "a9059cbb"

SOLIDITY_TYPE_ADDRESS = "address"
SOLIDITY_TYPE_UINT256 = "uint256"

# Error(string) selector prefixed to revert payloads
ABI_ERROR_SELECTOR = "08c379a0"

_HEX_DIGITS = set("0123456789abcdef")


@dataclass(frozen=True)
class SolidityParam:
    param_type: str
    param_value: object


def _is_hex(text: str) -> bool:
    return bool(text) and set(text) <= _HEX_DIGITS


def _strip_hex_prefix(text: str) -> str:
    text = text.strip().lower()
    return text[2:] if text.startswith("0x") else text


def _check_address(value) -> str:
    """41-prefixed hex form of a 20-byte address parameter"""
    if not isinstance(value, str):
        raise EncodingError("address parameter must be a hex string")
    param = _strip_hex_prefix(value)
    if len(param) == 42 and param.startswith("41"):
        param = param[2:]
    if len(param) != 40 or not _is_hex(param):
        raise EncodingError("length of address error.", context={"address": value})
    return "41" + param


def _check_uint256(value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise EncodingError("uint256 parameter must be an int")
    if value < 0:
        raise EncodingError("uint256 parameter must not be negative", context={"value": value})
    if value.bit_length() > 256:
        raise EncodingError("integer overflow.", context={"value": value})
    return value


_CHECKS = {
    SOLIDITY_TYPE_ADDRESS: _check_address,
    SOLIDITY_TYPE_UINT256: _check_uint256,
}


def _abi_encode(types: List[str], values: List) -> str:
    try:
        return trx_abi.encode(types, values).hex()
    except AbiEncodingError as e:
        raise EncodingError(f"abi encode {types} failed: {e}", cause=e)


def encode_address_param(value: str) -> str:
    """Left-pad a 20-byte address into a 32-byte slot"""
    return _abi_encode([SOLIDITY_TYPE_ADDRESS], [_check_address(value)])


def encode_uint256_param(value: int) -> str:
    return _abi_encode([SOLIDITY_TYPE_UINT256], [_check_uint256(value)])


def make_transaction_parameter(method_id: str, params: Iterable[SolidityParam]) -> str:
    """Concatenate a method id (may be empty) with the encoded parameters"""
    types, values = [], []
    for param in params:
        check = _CHECKS.get(param.param_type)
        if check is None:
            raise EncodingError(f"not support solidity type: {param.param_type}")
        types.append(param.param_type)
        values.append(check(param.param_value))
    if not types:
        return method_id
    return method_id + _abi_encode(types, values)


def decode_uint256(result_hex: str) -> int:
    """Parse a constant-call result into a big integer"""
    text = _strip_hex_prefix(result_hex or "")
    if not text:
        return 0
    try:
        data = bytes.fromhex(text)
    except ValueError as e:
        raise EncodingError("constant result is not hex", context={"result": result_hex}, cause=e)
    try:
        (value,) = trx_abi.decode([SOLIDITY_TYPE_UINT256], data)
    except DecodingError as e:
        raise EncodingError("constant result is not a uint256", context={"result": result_hex}, cause=e)
    return value


def decode_revert_message(message_hex: str) -> str:
    """
    Decode a node error message.

    Node messages are hex-encoded text; revert data from a contract is an
    ABI-encoded Error(string). Falls back to the input if neither applies.
    """
    text = (message_hex or "").strip()
    if not text:
        return ""
    lowered = _strip_hex_prefix(text)
    if not _is_hex(lowered) or len(lowered) % 2:
        return text
    data = bytes.fromhex(lowered)
    if lowered.startswith(ABI_ERROR_SELECTOR):
        try:
            (reason,) = trx_abi.decode(["string"], data[len(ABI_ERROR_SELECTOR) // 2:])
            return reason
        except DecodingError:
            logger.debug("revert payload is not an Error(string): %s", text)
    return data.decode("utf-8", errors="replace")
