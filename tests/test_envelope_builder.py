import hashlib

import pytest

from conftest import BLOCK_ID, NOW, make_key, to_hex
from tronsettle.core.errors import EncodingError, InvalidRawTransaction, ReferenceBlockUnavailable
from tronsettle.core.models import NativeTransfer, TokenDescriptor
from tronsettle.core.services.settlement import tx_proto
from tronsettle.core.services.settlement.envelope_builder import (
    EnvelopeBuilder,
    decode_envelope,
    insert_signature,
    parse_envelope,
    tx_digest,
)

OWNER = make_key(1).public_key.to_base58check_address()
TO = make_key(2).public_key.to_base58check_address()


@pytest.fixture
def builder(gateway, settings):
    return EnvelopeBuilder(gateway, settings, clock=lambda: NOW)


def _value(wire_hex):
    return decode_envelope(wire_hex)["raw_data"]["contract"][0]["parameter"]["value"]


def test_trc10_amount_encoded_in_base_units(builder, trc10):
    envelope = builder.create_token_transaction(TO, OWNER, "0.001", trc10)
    decoded = decode_envelope(envelope.wire_hex)
    contract = decoded["raw_data"]["contract"][0]
    assert contract["type"] == "TransferAssetContract"
    assert contract["parameter"]["type_url"] == "type.googleapis.com/protocol.TransferAssetContract"
    assert contract["parameter"]["value"]["amount"] == 1000
    assert contract["parameter"]["value"]["asset_name"] == "1002000"
    assert contract["parameter"]["value"]["owner_address"] == to_hex(OWNER)
    assert contract["parameter"]["value"]["to_address"] == to_hex(TO)


def test_native_transfer(builder):
    envelope = builder.create_token_transaction(TO, OWNER, "1.5", TokenDescriptor.native())
    decoded = decode_envelope(envelope.wire_hex)
    assert decoded["raw_data"]["contract"][0]["type"] == "TransferContract"
    assert _value(envelope.wire_hex)["amount"] == 1_500_000
    assert "fee_limit" not in decoded["raw_data"]


def test_reference_block_and_expiration(builder):
    envelope = builder.create_token_transaction(TO, OWNER, "1", TokenDescriptor.native())
    raw = decode_envelope(envelope.wire_hex)["raw_data"]
    block = bytes.fromhex(BLOCK_ID)
    assert raw["ref_block_bytes"] == block[6:8].hex()
    assert raw["ref_block_hash"] == block[8:16].hex()
    assert raw["expiration"] == int(NOW * 1000) + 36_000_000


def test_trc20_call_data_and_fee_limit(builder, trc20):
    envelope = builder.create_token_transaction(TO, OWNER, "2", trc20)
    decoded = decode_envelope(envelope.wire_hex)
    contract = decoded["raw_data"]["contract"][0]
    value = contract["parameter"]["value"]
    assert contract["type"] == "TriggerSmartContract"
    assert value["contract_address"] == to_hex(trc20.address)
    assert value["data"] == "a9059cbb" + to_hex(TO)[2:].rjust(64, "0") + format(2_000_000, "064x")
    assert decoded["raw_data"]["fee_limit"] == 10_000_000


def test_fee_limit_zero_disables_ceiling(builder, settings, trc20):
    settings.fee_limit = 0
    envelope = builder.create_token_transaction(TO, OWNER, "2", trc20)
    assert "fee_limit" not in decode_envelope(envelope.wire_hex)["raw_data"]


def test_digest_is_sha256_of_raw_body(builder):
    envelope = builder.create_token_transaction(TO, OWNER, "1", TokenDescriptor.native())
    tx = parse_envelope(envelope.wire_hex)
    expected = hashlib.sha256(tx.raw_data.SerializeToString(deterministic=True)).digest()
    assert envelope.digest == expected
    assert tx_digest(envelope.wire_hex) == tx_digest(envelope.wire_hex) == expected
    assert decode_envelope(envelope.wire_hex)["txID"] == envelope.txid


def test_signature_does_not_change_digest(builder):
    envelope = builder.create_token_transaction(TO, OWNER, "1", TokenDescriptor.native())
    signed = insert_signature(envelope.wire_hex, "11" * 65)
    assert tx_digest(signed) == envelope.digest
    assert decode_envelope(signed)["signature"] == ["11" * 65]


def test_insert_signature_rejects_bad_hex(builder):
    envelope = builder.create_token_transaction(TO, OWNER, "1", TokenDescriptor.native())
    with pytest.raises(InvalidRawTransaction):
        insert_signature(envelope.wire_hex, "zz")
    with pytest.raises(InvalidRawTransaction):
        insert_signature("not-hex", "11" * 65)


def test_missing_block_raises(builder, node):
    node.block = {}
    with pytest.raises(ReferenceBlockUnavailable):
        builder.create_token_transaction(TO, OWNER, "1", TokenDescriptor.native())


def test_node_error_on_block_raises(builder, node):
    node.fail["/wallet/getnowblock"] = 1
    with pytest.raises(ReferenceBlockUnavailable):
        builder.create_token_transaction(TO, OWNER, "1", TokenDescriptor.native())


def test_unknown_payload_rejected(builder):
    with pytest.raises(TypeError):
        builder.build_envelope(object())


def test_amount_beyond_int64_rejected(builder):
    payload = NativeTransfer(owner=bytes(21), to=bytes(21), amount=2**63)
    with pytest.raises(EncodingError):
        builder.build_envelope(payload)


def test_contract_type_tags():
    assert tx_proto.type_url(tx_proto.ContractType.TriggerSmartContract) == \
        "type.googleapis.com/protocol.TriggerSmartContract"
    assert int(tx_proto.ContractType.TransferAssetContract) == 2
