"""
secp256k1 signing of transaction digests and signer recovery.
"""

import logging

from tronpy.keys import PrivateKey, Signature
from tronpy.exceptions import BadKey

from tronsettle.core.errors import SigningError, SignatureVerificationFailed

logger = logging.getLogger(__name__)

CURVE_SECP256K1 = "secp256k1"


def sign_digest(digest_hex: str, private_key: bytes, curve: str = CURVE_SECP256K1) -> str:
    """Sign a 32-byte digest; returns the 65-byte r|s|v signature as hex"""
    if curve != CURVE_SECP256K1:
        raise SigningError(f"unsupported curve: {curve}")
    try:
        digest = bytes.fromhex(digest_hex)
    except ValueError as e:
        raise SigningError("transaction digest is not valid hex", cause=e)
    if len(digest) != 32:
        raise SigningError(f"transaction digest must be 32 bytes, got {len(digest)}")
    try:
        pk = PrivateKey(bytes(private_key))
    except (BadKey, ValueError, TypeError) as e:
        raise SigningError("invalid private key", cause=e)
    sig = pk.sign_msg_hash(digest)
    return sig.hex()


def recover_address(digest: bytes, signature: bytes) -> str:
    """Recover the 41-prefixed hex address of the key that produced `signature`"""
    try:
        sig = Signature(signature)
        public_key = sig.recover_public_key_from_msg_hash(digest)
    except Exception as e:  # BadSignature or a backend recovery error
        raise SignatureVerificationFailed("recover public key from signature failed", cause=e)
    return public_key.to_hex_address().lower()
