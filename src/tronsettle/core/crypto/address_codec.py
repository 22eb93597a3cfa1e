# Преобразование адресов TRON (base58check <-> hex)

import logging
from typing import Tuple

from tronpy import keys
from tronpy.exceptions import BadAddress

from tronsettle.core.errors import AddressDecodeError

logger = logging.getLogger(__name__)

ADDRESS_PREFIX = 0x41


def decode_address(address: str) -> Tuple[str, bytes]:
    """
    Decode a TRON address into its hex form and raw bytes.

    Accepts base58check (T...) or 41-prefixed hex text. Returns
    (hex_form, raw_bytes) where hex_form is the lowercase 42-char hex and
    raw_bytes is the 21-byte value placed in contract payloads.
    """
    if not isinstance(address, str) or not address.strip():
        raise AddressDecodeError("empty address", context={"address": address})
    try:
        hex_form = keys.to_hex_address(address.strip()).lower()
    except (BadAddress, ValueError, TypeError) as e:
        raise AddressDecodeError(f"invalid TRON address: {address}", context={"address": address}, cause=e)

    raw = bytes.fromhex(hex_form)
    if len(raw) != 21 or raw[0] != ADDRESS_PREFIX:
        raise AddressDecodeError(f"invalid TRON address: {address}", context={"address": address})
    return hex_form, raw


def encode_address(raw_or_hex: bytes | str) -> str:
    """Render a raw or hex address as base58check for display"""
    if isinstance(raw_or_hex, bytes):
        raw_or_hex = raw_or_hex.hex()
    return keys.to_base58check_address(raw_or_hex)
