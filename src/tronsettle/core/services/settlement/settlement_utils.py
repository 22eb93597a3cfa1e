"""
Settlement Utilities
Exact conversion between human amounts and chain base units
"""

import hashlib
import logging
from decimal import Context, Decimal, InvalidOperation

from tronsettle.core.errors import EncodingError

logger = logging.getLogger(__name__)

# Wide enough for any uint256 at any decimal exponent
_CTX = Context(prec=120)


def parse_amount(amount) -> Decimal:
    """
    Parse a human amount strictly

    Args:
        amount: decimal string, int or Decimal

    Returns:
        Decimal value
    """
    if isinstance(amount, Decimal):
        value = amount
    else:
        try:
            value = Decimal(str(amount).strip())
        except (InvalidOperation, ValueError) as e:
            raise EncodingError(f"invalid amount: {amount!r}", cause=e)
    if not value.is_finite():
        raise EncodingError(f"invalid amount: {amount!r}")
    return value


def parse_decimal(text, default: Decimal = Decimal(0)) -> Decimal:
    """Lenient parse for optional settings such as support amounts ("" -> default)"""
    if text is None or str(text).strip() == "":
        return default
    try:
        value = Decimal(str(text).strip())
    except (InvalidOperation, ValueError):
        logger.warning("Ignoring non-numeric value %r", text)
        return default
    return value if value.is_finite() else default


def to_base_units(amount, decimals: int) -> int:
    """
    Convert a human amount to integer base units, e.g. "0.001" @ 6 -> 1000

    Raises EncodingError if the amount has more fractional digits than
    `decimals` allows; nothing is rounded away.
    """
    value = parse_amount(amount)
    shifted = value.scaleb(decimals, context=_CTX)
    integral = shifted.to_integral_value(context=_CTX)
    if shifted != integral:
        raise EncodingError(
            f"amount {amount} has more than {decimals} decimal places",
            context={"amount": str(amount), "decimals": decimals},
        )
    return int(integral)


def from_base_units(value: int, decimals: int) -> Decimal:
    """Inverse of to_base_units"""
    return Decimal(int(value)).scaleb(-decimals, context=_CTX)


def format_amount(value: Decimal, decimals: int) -> str:
    """Fixed-point rendering with exactly `decimals` places"""
    if decimals <= 0:
        return str(value.quantize(Decimal(1), context=_CTX))
    return str(value.quantize(Decimal(1).scaleb(-decimals), context=_CTX))


def sun_to_trx(sun: int, decimals: int = 6) -> Decimal:
    return from_base_units(sun, decimals)


def gen_transaction_wx_id(tx_id: str, symbol: str, contract_address: str = "") -> str:
    """Deterministic wallet-side id for a submitted transaction"""
    plain = f"{tx_id}_{symbol}_{contract_address}"
    return hashlib.sha256(plain.encode("utf-8")).hexdigest()
