"""
Protobuf schema of the TRON transaction envelope.

Only the messages the settlement core reads or writes are declared. Field
numbers follow the chain's core Tron.proto / contract protos so the bytes
produced here are what a full node hashes and accepts. Message classes are
built from descriptors in a private pool to stay clear of any other
`protocol.*` registrations in the process.
"""

from enum import IntEnum

from google.protobuf import any_pb2, descriptor_pb2, descriptor_pool, message_factory

PACKAGE = "protocol"
TYPE_URL_PREFIX = "type.googleapis.com/protocol."

_F = descriptor_pb2.FieldDescriptorProto
_OPTIONAL = _F.LABEL_OPTIONAL
_REPEATED = _F.LABEL_REPEATED


class ContractType(IntEnum):
    TransferContract = 1
    TransferAssetContract = 2
    TriggerSmartContract = 31


def _add_fields(message, fields):
    for name, number, ftype, label, type_name in fields:
        field = message.field.add(name=name, number=number, type=ftype, label=label)
        if type_name:
            field.type_name = type_name


def _build_file() -> descriptor_pb2.FileDescriptorProto:
    fp = descriptor_pb2.FileDescriptorProto(
        name="tronsettle/protocol.proto",
        package=PACKAGE,
        syntax="proto3",
    )
    fp.dependency.append("google/protobuf/any.proto")

    tx = fp.message_type.add(name="Transaction")

    contract = tx.nested_type.add(name="Contract")
    contract_type = contract.enum_type.add(name="ContractType")
    contract_type.value.add(name="AccountCreateContract", number=0)
    for kind in ContractType:
        contract_type.value.add(name=kind.name, number=int(kind))
    _add_fields(contract, [
        ("type", 1, _F.TYPE_ENUM, _OPTIONAL, ".protocol.Transaction.Contract.ContractType"),
        ("parameter", 2, _F.TYPE_MESSAGE, _OPTIONAL, ".google.protobuf.Any"),
        ("provider", 3, _F.TYPE_BYTES, _OPTIONAL, None),
        ("ContractName", 4, _F.TYPE_BYTES, _OPTIONAL, None),
        ("Permission_id", 5, _F.TYPE_INT32, _OPTIONAL, None),
    ])

    raw = tx.nested_type.add(name="raw")
    _add_fields(raw, [
        ("ref_block_bytes", 1, _F.TYPE_BYTES, _OPTIONAL, None),
        ("ref_block_num", 3, _F.TYPE_INT64, _OPTIONAL, None),
        ("ref_block_hash", 4, _F.TYPE_BYTES, _OPTIONAL, None),
        ("expiration", 8, _F.TYPE_INT64, _OPTIONAL, None),
        ("data", 10, _F.TYPE_BYTES, _OPTIONAL, None),
        ("contract", 11, _F.TYPE_MESSAGE, _REPEATED, ".protocol.Transaction.Contract"),
        ("scripts", 12, _F.TYPE_BYTES, _OPTIONAL, None),
        ("timestamp", 14, _F.TYPE_INT64, _OPTIONAL, None),
        ("fee_limit", 18, _F.TYPE_INT64, _OPTIONAL, None),
    ])

    _add_fields(tx, [
        ("raw_data", 1, _F.TYPE_MESSAGE, _OPTIONAL, ".protocol.Transaction.raw"),
        ("signature", 2, _F.TYPE_BYTES, _REPEATED, None),
    ])

    transfer = fp.message_type.add(name="TransferContract")
    _add_fields(transfer, [
        ("owner_address", 1, _F.TYPE_BYTES, _OPTIONAL, None),
        ("to_address", 2, _F.TYPE_BYTES, _OPTIONAL, None),
        ("amount", 3, _F.TYPE_INT64, _OPTIONAL, None),
    ])

    asset = fp.message_type.add(name="TransferAssetContract")
    _add_fields(asset, [
        ("asset_name", 1, _F.TYPE_BYTES, _OPTIONAL, None),
        ("owner_address", 2, _F.TYPE_BYTES, _OPTIONAL, None),
        ("to_address", 3, _F.TYPE_BYTES, _OPTIONAL, None),
        ("amount", 4, _F.TYPE_INT64, _OPTIONAL, None),
    ])

    trigger = fp.message_type.add(name="TriggerSmartContract")
    _add_fields(trigger, [
        ("owner_address", 1, _F.TYPE_BYTES, _OPTIONAL, None),
        ("contract_address", 2, _F.TYPE_BYTES, _OPTIONAL, None),
        ("call_value", 3, _F.TYPE_INT64, _OPTIONAL, None),
        ("data", 4, _F.TYPE_BYTES, _OPTIONAL, None),
        ("call_token_value", 5, _F.TYPE_INT64, _OPTIONAL, None),
        ("token_id", 6, _F.TYPE_INT64, _OPTIONAL, None),
    ])
    return fp


_pool = descriptor_pool.DescriptorPool()
_pool.AddSerializedFile(any_pb2.DESCRIPTOR.serialized_pb)
_pool.AddSerializedFile(_build_file().SerializeToString())


def _message_class(name: str):
    return message_factory.GetMessageClass(_pool.FindMessageTypeByName(f"{PACKAGE}.{name}"))


Transaction = _message_class("Transaction")
TransactionContract = _message_class("Transaction.Contract")
TransactionRaw = _message_class("Transaction.raw")
TransferContract = _message_class("TransferContract")
TransferAssetContract = _message_class("TransferAssetContract")
TriggerSmartContract = _message_class("TriggerSmartContract")

PAYLOAD_CLASSES = {
    ContractType.TransferContract: TransferContract,
    ContractType.TransferAssetContract: TransferAssetContract,
    ContractType.TriggerSmartContract: TriggerSmartContract,
}


def type_url(kind: ContractType) -> str:
    return TYPE_URL_PREFIX + kind.name
