"""
Settlement errors

Structured exceptions raised while building, signing, verifying and
submitting transactions. Each carries a stable integer code and a small
context dict (address, amount, shortfall) so callers can render a message
or classify the failure without string matching.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any, Dict, Mapping, Optional


class ErrorCode(IntEnum):
    """Stable error codes for settlement exceptions"""
    GENERIC = 3000
    NO_ADDRESS_IN_ACCOUNT = 3001
    INSUFFICIENT_BALANCE = 3002
    INSUFFICIENT_TOKEN_BALANCE = 3003
    INSUFFICIENT_FEES = 3004
    ACCOUNT_NOT_FOUND = 3005
    REFERENCE_BLOCK_UNAVAILABLE = 3006
    SIGNATURE_EMPTY = 3007
    SIGNATURE_VERIFICATION_FAILED = 3008
    CONTRACT_CALL = 3009
    ENCODING = 3010
    ADDRESS_DECODE = 3011
    INVALID_RAW_TRANSACTION = 3012
    INVALID_SUMMARY_REQUEST = 3013
    NODE_REQUEST = 3014
    BROADCAST = 3015
    SIGNING = 3016


class SettlementError(Exception):
    """Base class for settlement exceptions"""

    default_code: ErrorCode = ErrorCode.GENERIC

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | int | None = None,
        context: Optional[Mapping[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.message: str = message
        self.code: int = int(code if code is not None else self.default_code)
        self.context: Dict[str, Any] = dict(context) if context else {}
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Structured view suitable for logs"""
        out: Dict[str, Any] = {
            "code": self.code,
            "error": type(self).__name__,
            "message": self.message,
        }
        if self.context:
            out["context"] = dict(self.context)
        return out


class NoAddressInAccount(SettlementError):
    default_code = ErrorCode.NO_ADDRESS_IN_ACCOUNT


class InsufficientBalance(SettlementError):
    default_code = ErrorCode.INSUFFICIENT_BALANCE


class InsufficientTokenBalance(SettlementError):
    default_code = ErrorCode.INSUFFICIENT_TOKEN_BALANCE


class InsufficientFees(SettlementError):
    default_code = ErrorCode.INSUFFICIENT_FEES


class AccountNotFound(SettlementError):
    default_code = ErrorCode.ACCOUNT_NOT_FOUND


class ReferenceBlockUnavailable(SettlementError):
    default_code = ErrorCode.REFERENCE_BLOCK_UNAVAILABLE


class SignatureEmpty(SettlementError):
    default_code = ErrorCode.SIGNATURE_EMPTY


class SignatureVerificationFailed(SettlementError):
    default_code = ErrorCode.SIGNATURE_VERIFICATION_FAILED


class ContractCallError(SettlementError):
    """A constant contract call reverted; `revert_message` holds the decoded text"""

    default_code = ErrorCode.CONTRACT_CALL

    def __init__(self, message: str, *, revert_message: str = "", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.revert_message = revert_message


class EncodingError(SettlementError):
    default_code = ErrorCode.ENCODING


class AddressDecodeError(SettlementError):
    default_code = ErrorCode.ADDRESS_DECODE


class InvalidRawTransaction(SettlementError):
    default_code = ErrorCode.INVALID_RAW_TRANSACTION


class InvalidSummaryRequest(SettlementError):
    default_code = ErrorCode.INVALID_SUMMARY_REQUEST


class NodeRequestError(SettlementError):
    default_code = ErrorCode.NODE_REQUEST


class BroadcastError(SettlementError):
    default_code = ErrorCode.BROADCAST


class SigningError(SettlementError):
    default_code = ErrorCode.SIGNING


def convert_error(err: BaseException | None) -> SettlementError | None:
    """Normalize any exception into a SettlementError (None passes through)"""
    if err is None:
        return None
    if isinstance(err, SettlementError):
        return err
    return SettlementError(str(err) or type(err).__name__, cause=err)


__all__ = [
    "ErrorCode",
    "SettlementError",
    "NoAddressInAccount",
    "InsufficientBalance",
    "InsufficientTokenBalance",
    "InsufficientFees",
    "AccountNotFound",
    "ReferenceBlockUnavailable",
    "SignatureEmpty",
    "SignatureVerificationFailed",
    "ContractCallError",
    "EncodingError",
    "AddressDecodeError",
    "InvalidRawTransaction",
    "InvalidSummaryRequest",
    "NodeRequestError",
    "BroadcastError",
    "SigningError",
    "convert_error",
]
