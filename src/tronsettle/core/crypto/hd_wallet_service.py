# Логика получения ключей по HD-пути

import logging
from bip_utils import (
    Bip32KeyError,
    Bip32PathError,
    Bip32Slip10Secp256k1,
    Bip39SeedGenerator,
    Bip44,
    Bip44Changes,
    Bip44Coins,
)

from tronsettle.core.crypto.signer import CURVE_SECP256K1
from tronsettle.core.errors import SigningError

logger = logging.getLogger("hd_wallet_service")

TRON_ACCOUNT_PATH = "m/44'/195'/{account}'/0/{index}"


def tron_address_path(account: int = 0, address_index: int = 0) -> str:
    """BIP44 path of the external-chain address `address_index` under `account`"""
    return TRON_ACCOUNT_PATH.format(account=account, index=address_index)


class HDKeyDeriver:
    """
    Derives private keys for signing from a BIP39 mnemonic.
    Holds only the seed; keys are derived per request and not cached.
    """

    def __init__(self, mnemonic: str, passphrase: str = ""):
        self._seed = Bip39SeedGenerator(mnemonic).Generate(passphrase)

    def derive_private_key(self, account, path: str, curve: str = CURVE_SECP256K1) -> bytes:
        """
        Принимает путь деривации (str) и кривую.
        Возвращает приватный ключ (32 байта) для подписи.
        """
        if curve != CURVE_SECP256K1:
            raise SigningError(f"unsupported curve: {curve}")
        logger.debug("derive_private_key called for account=%s path=%s", getattr(account, "account_id", account), path)
        try:
            ctx = Bip32Slip10Secp256k1.FromSeed(self._seed).DerivePath(path)
        except (Bip32KeyError, Bip32PathError, ValueError) as e:
            raise SigningError(f"derive key with path {path} failed", cause=e)
        return ctx.PrivateKey().Raw().ToBytes()

    def derive_address(self, account: int = 0, address_index: int = 0) -> str:
        """Base58 TRON address for the BIP44 account/index pair"""
        ctx = (
            Bip44.FromSeed(self._seed, Bip44Coins.TRON)
            .Purpose()
            .Coin()
            .Account(account)
            .Change(Bip44Changes.CHAIN_EXT)
            .AddressIndex(address_index)
        )
        address = ctx.PublicKey().ToAddress()
        logger.info(
            "Derived address with path m/44'/195'/%d'/0/%d: %s",
            account,
            address_index,
            address,
        )
        return address
