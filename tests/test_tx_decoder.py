from decimal import Decimal

import pytest

from conftest import make_key, to_hex
from tronsettle.core.crypto.signer import sign_digest
from tronsettle.core.errors import (
    BroadcastError,
    InvalidRawTransaction,
    SignatureEmpty,
    SignatureVerificationFailed,
)
from tronsettle.core.models import AssetsAccount, RawTransaction, TokenDescriptor, TxState
from tronsettle.core.services.settlement import check_raw_transaction, decode_envelope, tx_digest

ACCOUNT = AssetsAccount(account_id="acc-1", wallet_id="w1")


@pytest.fixture
def funded(wallet, node, outsider):
    addr = wallet.add_address("acc-1", 21)
    node.fund(addr, 5_000_000)
    node.fund(outsider, 0)
    return addr


def _raw_tx(to, amount="1.5", token=None):
    return RawTransaction(account=ACCOUNT, to={to: amount}, token=token or TokenDescriptor.native())


def test_check_raw_transaction_single_destination():
    check_raw_transaction(_raw_tx("T1"))
    with pytest.raises(InvalidRawTransaction):
        check_raw_transaction(RawTransaction(account=ACCOUNT, to={"T1": "1", "T2": "1"}, token=TokenDescriptor.native()))
    with pytest.raises(InvalidRawTransaction):
        check_raw_transaction(RawTransaction(account=ACCOUNT, to={}, token=TokenDescriptor.native()))


def test_build_populates_transaction(decoder, funded, outsider):
    raw_tx = _raw_tx(outsider)
    decoder.create_raw_transaction(raw_tx)

    assert raw_tx.is_built
    assert raw_tx.state is TxState.BUILT
    assert raw_tx.fees == "0"
    assert raw_tx.tx_amount == "-1.500000"
    assert raw_tx.tx_from == [f"{funded}:1.5"]
    assert raw_tx.tx_to == [f"{outsider}:1.5"]

    [key_signature] = raw_tx.signatures["acc-1"]
    assert key_signature.ecc_type == "secp256k1"
    assert key_signature.address.address == funded
    assert key_signature.message == tx_digest(raw_tx.raw_hex).hex()


def test_transfer_to_own_address_counts_only_fees(decoder, wallet, node, funded):
    own = wallet.add_address("acc-1", 22)
    node.fund(own, 0)
    raw_tx = _raw_tx(own, "1")
    decoder.create_raw_transaction(raw_tx)
    assert Decimal(raw_tx.tx_amount) == 0


def test_full_lifecycle(decoder, node, funded, outsider):
    raw_tx = _raw_tx(outsider)
    decoder.create_raw_transaction(raw_tx)
    decoder.sign_raw_transaction(raw_tx)
    assert raw_tx.state is TxState.SIGNED

    decoder.verify_raw_transaction(raw_tx)
    assert raw_tx.is_completed

    tx = decoder.submit_raw_transaction(raw_tx)

    assert raw_tx.is_submit
    assert raw_tx.state is TxState.SUBMITTED
    assert tx.tx_id == raw_tx.signatures["acc-1"][0].message
    assert tx.amount == "-1.500000"
    assert tx.account_id == "acc-1"
    assert tx.decimals == 6
    assert len(tx.wx_id) == 64

    endpoint, params = node.calls[-1]
    assert endpoint == "/wallet/broadcasthex"
    broadcast = decode_envelope(params["transaction"])
    assert broadcast["txID"] == tx.tx_id
    assert broadcast["signature"] == [raw_tx.signatures["acc-1"][0].signature]


def test_verify_rejects_foreign_signer(decoder, funded, outsider):
    raw_tx = _raw_tx(outsider)
    decoder.create_raw_transaction(raw_tx)
    key_signature = raw_tx.signatures["acc-1"][0]
    key_signature.signature = sign_digest(key_signature.message, bytes([0x66]) * 32)

    with pytest.raises(SignatureVerificationFailed):
        decoder.verify_raw_transaction(raw_tx)
    assert not raw_tx.is_completed
    with pytest.raises(InvalidRawTransaction):
        decoder.submit_raw_transaction(raw_tx)


def test_signature_recovers_owner(decoder, funded, outsider):
    raw_tx = _raw_tx(outsider)
    decoder.create_raw_transaction(raw_tx)
    decoder.sign_raw_transaction(raw_tx)
    signature = raw_tx.signatures["acc-1"][0].signature
    owner = decode_envelope(raw_tx.raw_hex)["raw_data"]["contract"][0]["parameter"]["value"]["owner_address"]
    assert owner == to_hex(funded) == to_hex(make_key(21).public_key.to_base58check_address())
    assert len(bytes.fromhex(signature)) == 65


def test_sign_before_build_rejected(decoder, outsider):
    with pytest.raises(InvalidRawTransaction):
        decoder.sign_raw_transaction(_raw_tx(outsider))


def test_sign_without_pending_signatures(decoder, outsider):
    raw_tx = _raw_tx(outsider)
    raw_tx.is_built = True
    with pytest.raises(SignatureEmpty):
        decoder.sign_raw_transaction(raw_tx)


def test_verify_unsigned_rejected(decoder, funded, outsider):
    raw_tx = _raw_tx(outsider)
    decoder.create_raw_transaction(raw_tx)
    with pytest.raises(SignatureEmpty):
        decoder.verify_raw_transaction(raw_tx)


def test_submit_requires_hex_and_verification(decoder, funded, outsider):
    raw_tx = _raw_tx(outsider)
    with pytest.raises(InvalidRawTransaction):
        decoder.submit_raw_transaction(raw_tx)
    decoder.create_raw_transaction(raw_tx)
    decoder.sign_raw_transaction(raw_tx)
    with pytest.raises(InvalidRawTransaction):
        decoder.submit_raw_transaction(raw_tx)


def test_submit_twice_rejected(decoder, funded, outsider):
    raw_tx = _raw_tx(outsider)
    decoder.create_raw_transaction(raw_tx)
    decoder.sign_raw_transaction(raw_tx)
    decoder.verify_raw_transaction(raw_tx)
    decoder.submit_raw_transaction(raw_tx)
    with pytest.raises(InvalidRawTransaction):
        decoder.submit_raw_transaction(raw_tx)


def test_broadcast_failure_decodes_message(decoder, node, funded, outsider):
    node.broadcast_response = {
        "result": False,
        "code": "SIGERROR",
        "message": b"validate signature error".hex(),
    }
    raw_tx = _raw_tx(outsider)
    decoder.create_raw_transaction(raw_tx)
    decoder.sign_raw_transaction(raw_tx)
    decoder.verify_raw_transaction(raw_tx)

    with pytest.raises(BroadcastError) as exc:
        decoder.submit_raw_transaction(raw_tx)
    assert "validate signature error" in str(exc.value)
    assert exc.value.context["code"] == "SIGERROR"
    assert not raw_tx.is_submit


def test_trc20_lifecycle(decoder, wallet, node, trc20, outsider):
    addr = wallet.add_address("acc-1", 23)
    node.fund(addr, 0)
    node.fund(outsider, 0)
    node.set_trc20(trc20.address, addr, 50_000_000)
    node.resources[to_hex(addr)] = {"EnergyLimit": 100_000}

    raw_tx = _raw_tx(outsider, "12.5", trc20)
    decoder.create_raw_transaction(raw_tx)
    decoder.sign_raw_transaction(raw_tx)
    decoder.verify_raw_transaction(raw_tx)
    tx = decoder.submit_raw_transaction(raw_tx)

    assert raw_tx.tx_amount == "-12.500000"
    assert tx.token.protocol.value == "trc20"


def test_token_net_amount_excludes_trx_fee(decoder, wallet, node, trc10, outsider):
    addr = wallet.add_address("acc-1", 24)
    node.fund(addr, 1_000_000, assets={"1002000": 50_000_000})
    node.fund(outsider, 0)
    node.net[to_hex(addr)] = {"freeNetUsed": 600, "freeNetLimit": 600}

    raw_tx = _raw_tx(outsider, "10", trc10)
    decoder.create_raw_transaction(raw_tx)

    assert Decimal(raw_tx.fees) > 0
    assert raw_tx.tx_amount == "-10.000000"


def test_native_net_amount_includes_fee(decoder, node, funded, outsider):
    node.net[to_hex(funded)] = {"freeNetUsed": 600, "freeNetLimit": 600}
    raw_tx = _raw_tx(outsider)
    decoder.create_raw_transaction(raw_tx)

    fee = Decimal(raw_tx.fees)
    assert fee > 0
    assert Decimal(raw_tx.tx_amount) == -(Decimal("1.5") + fee)


def test_sign_after_verify_rejected(decoder, funded, outsider):
    raw_tx = _raw_tx(outsider)
    decoder.create_raw_transaction(raw_tx)
    decoder.sign_raw_transaction(raw_tx)
    decoder.verify_raw_transaction(raw_tx)
    signature = raw_tx.signatures["acc-1"][0].signature

    with pytest.raises(InvalidRawTransaction):
        decoder.sign_raw_transaction(raw_tx)
    decoder.submit_raw_transaction(raw_tx)
    with pytest.raises(InvalidRawTransaction):
        decoder.sign_raw_transaction(raw_tx)
    assert raw_tx.signatures["acc-1"][0].signature == signature
