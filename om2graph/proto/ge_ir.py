"""``ge.proto`` message family carried in the MODEL_DEF partition.

The descriptors are assembled with ``descriptor_pb2`` and registered in a
private pool, so no generated ``*_pb2`` module is required.
"""
from __future__ import annotations

from typing import Dict, Iterable, Optional, Tuple

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory
from google.protobuf.message import DecodeError

from om2graph.errors import SchemaDecodeError
from om2graph.utils.enums import OM_DTYPES

PACKAGE = "ge.proto"

_F = descriptor_pb2.FieldDescriptorProto

_SCALARS = {
    "string": _F.TYPE_STRING,
    "bytes": _F.TYPE_BYTES,
    "int64": _F.TYPE_INT64,
    "uint32": _F.TYPE_UINT32,
    "float": _F.TYPE_FLOAT,
    "bool": _F.TYPE_BOOL,
}

# (name, number, type, repeated). Non-scalar types name a message or enum.
_ATTR_DEF_LIST_VALUE = [
    ("s", 2, "bytes", True),
    ("i", 3, "int64", True),
    ("f", 4, "float", True),
    ("b", 5, "bool", True),
    ("bt", 7, "bytes", True),
    ("td", 8, "TensorDescriptor", True),
    ("t", 9, "TensorDef", True),
    ("g", 10, "GraphDef", True),
    ("na", 11, "NamedAttrs", True),
    ("dt", 12, "int64", True),
    ("val_type", 20, "AttrDef.ListValue.ListValueType", False),
]

_LIST_VALUE_TYPES = [
    "VT_LIST_NONE", "VT_LIST_STRING", "VT_LIST_INT", "VT_LIST_FLOAT", "VT_LIST_BOOL",
    "VT_LIST_BYTES", "VT_LIST_TENSOR_DESC", "VT_LIST_TENSOR", "VT_LIST_GRAPH",
    "VT_LIST_NAMED_ATTRS", "VT_LIST_DATA_TYPE",
]

# Members of the AttrDef ``value`` oneof.
_ATTR_DEF_VALUE = [
    ("list", 1, "AttrDef.ListValue"),
    ("s", 2, "bytes"),
    ("i", 3, "int64"),
    ("f", 4, "float"),
    ("b", 5, "bool"),
    ("bt", 7, "bytes"),
    ("func", 10, "NamedAttrs"),
    ("td", 11, "TensorDescriptor"),
    ("t", 12, "TensorDef"),
    ("g", 13, "GraphDef"),
    ("list_list_int", 14, "AttrDef.ListListInt"),
    ("dt", 15, "int64"),
    ("list_list_float", 16, "AttrDef.ListListFloat"),
]

_SHAPE_DEF = [
    ("dim", 1, "int64", True),
]

_TENSOR_DESCRIPTOR = [
    ("name", 1, "string", False),
    ("dtype", 2, "DataType", False),
    ("shape", 3, "ShapeDef", False),
    ("layout", 4, "string", False),
    ("has_out_attr", 9, "bool", False),
    ("size", 10, "int64", False),
    ("weight_size", 11, "int64", False),
    ("reuse_input", 12, "bool", False),
    ("output_tensor", 13, "bool", False),
    ("device_type", 14, "string", False),
    ("input_tensor", 15, "bool", False),
    ("real_dim_cnt", 16, "int64", False),
    ("reuse_input_index", 17, "int64", False),
    ("data_offset", 18, "int64", False),
    ("cmps_size", 19, "int64", False),
    ("cmps_tab", 20, "string", False),
    ("cmps_tab_offset", 21, "int64", False),
]

_TENSOR_DEF = [
    ("desc", 1, "TensorDescriptor", False),
    ("data", 2, "bytes", False),
]

_NAMED_ATTRS = [
    ("name", 1, "string", False),
]

_OP_DEF = [
    ("name", 1, "string", False),
    ("type", 2, "string", False),
    ("input", 5, "string", True),
    ("has_out_attr", 20, "bool", False),
    ("id", 21, "int64", False),
    ("stream_id", 22, "int64", False),
    ("input_name", 23, "string", True),
    ("src_name", 24, "string", True),
    ("src_index", 25, "int64", True),
    ("dst_name", 26, "string", True),
    ("dst_index", 27, "int64", True),
    ("input_i", 28, "int64", True),
    ("output_i", 29, "int64", True),
    ("workspace", 30, "int64", True),
    ("workspace_bytes", 31, "int64", True),
    ("is_input_const", 32, "bool", True),
    ("input_desc", 33, "TensorDescriptor", True),
    ("output_desc", 34, "TensorDescriptor", True),
    ("subgraph_name", 35, "string", True),
]

_GRAPH_DEF = [
    ("name", 1, "string", False),
    ("input", 4, "string", True),
    ("output", 5, "string", True),
    ("op", 6, "OpDef", True),
]

_MODEL_DEF = [
    ("name", 1, "string", False),
    ("version", 2, "uint32", False),
    ("custom_version", 3, "string", False),
    ("graph", 7, "GraphDef", True),
]

# Messages carrying ``map<string, AttrDef>``: message -> (field name, number).
_ATTR_MAPS = {
    "NamedAttrs": ("attr", 2),
    "TensorDescriptor": ("attr", 5),
    "OpDef": ("attr", 10),
    "GraphDef": ("attr", 11),
    "ModelDef": ("attr", 11),
}

_ENUMS = {"DataType", "AttrDef.ListValue.ListValueType"}


def _add_field(
    message: descriptor_pb2.DescriptorProto,
    name: str,
    number: int,
    type_name: str,
    repeated: bool = False,
    oneof_index: Optional[int] = None,
) -> None:
    field = message.field.add()
    field.name = name
    field.number = number
    field.label = _F.LABEL_REPEATED if repeated else _F.LABEL_OPTIONAL
    if type_name in _SCALARS:
        field.type = _SCALARS[type_name]
    else:
        field.type = _F.TYPE_ENUM if type_name in _ENUMS else _F.TYPE_MESSAGE
        field.type_name = f".{PACKAGE}.{type_name}"
    if oneof_index is not None:
        field.oneof_index = oneof_index


def _add_fields(
    message: descriptor_pb2.DescriptorProto,
    fields: Iterable[Tuple[str, int, str, bool]],
) -> None:
    for name, number, type_name, repeated in fields:
        _add_field(message, name, number, type_name, repeated)


def _add_attr_map(
    message: descriptor_pb2.DescriptorProto,
    full_name: str,
    name: str,
    number: int,
) -> None:
    entry = message.nested_type.add()
    entry.name = "AttrEntry"
    entry.options.map_entry = True
    _add_field(entry, "key", 1, "string")
    _add_field(entry, "value", 2, "AttrDef")
    _add_field(message, name, number, f"{full_name}.AttrEntry", repeated=True)


def _build_file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    file_proto = descriptor_pb2.FileDescriptorProto()
    file_proto.name = "om2graph/ge_ir.proto"
    file_proto.package = PACKAGE
    file_proto.syntax = "proto3"

    data_type = file_proto.enum_type.add()
    data_type.name = "DataType"
    for number, dtype_name in enumerate(OM_DTYPES):
        value = data_type.value.add()
        value.name = f"DT_{dtype_name.upper()}"
        value.number = number

    attr_def = file_proto.message_type.add()
    attr_def.name = "AttrDef"
    list_value = attr_def.nested_type.add()
    list_value.name = "ListValue"
    list_value_type = list_value.enum_type.add()
    list_value_type.name = "ListValueType"
    for number, name in enumerate(_LIST_VALUE_TYPES):
        value = list_value_type.value.add()
        value.name = name
        value.number = number
    _add_fields(list_value, _ATTR_DEF_LIST_VALUE)

    for outer, element in (("ListListInt", "int64"), ("ListListFloat", "float")):
        list_list = attr_def.nested_type.add()
        list_list.name = outer
        inner = list_list.nested_type.add()
        inner.name = "ListInt" if element == "int64" else "ListFloat"
        inner_field = "list_i" if element == "int64" else "list_f"
        _add_field(inner, inner_field, 1, element, repeated=True)
        _add_field(
            list_list,
            f"list_list_{inner_field[-1]}",
            1,
            f"AttrDef.{outer}.{inner.name}",
            repeated=True,
        )

    attr_def.oneof_decl.add().name = "value"
    for name, number, type_name in _ATTR_DEF_VALUE:
        _add_field(attr_def, name, number, type_name, oneof_index=0)

    for message_name, fields in (
        ("NamedAttrs", _NAMED_ATTRS),
        ("ShapeDef", _SHAPE_DEF),
        ("TensorDescriptor", _TENSOR_DESCRIPTOR),
        ("TensorDef", _TENSOR_DEF),
        ("OpDef", _OP_DEF),
        ("GraphDef", _GRAPH_DEF),
        ("ModelDef", _MODEL_DEF),
    ):
        message = file_proto.message_type.add()
        message.name = message_name
        _add_fields(message, fields)
        if message_name in _ATTR_MAPS:
            field_name, number = _ATTR_MAPS[message_name]
            _add_attr_map(message, message_name, field_name, number)

    return file_proto


def _build_message_classes() -> Dict[str, type]:
    pool = descriptor_pool.DescriptorPool()
    pool.AddSerializedFile(_build_file_descriptor().SerializeToString())
    names = [
        "AttrDef",
        "AttrDef.ListValue",
        "AttrDef.ListListInt",
        "AttrDef.ListListFloat",
        "NamedAttrs",
        "ShapeDef",
        "TensorDescriptor",
        "TensorDef",
        "OpDef",
        "GraphDef",
        "ModelDef",
    ]
    return {
        name: message_factory.GetMessageClass(
            pool.FindMessageTypeByName(f"{PACKAGE}.{name}")
        ) for name in names
    }


_MESSAGE_CLASSES = _build_message_classes()

AttrDef = _MESSAGE_CLASSES["AttrDef"]
ListValue = _MESSAGE_CLASSES["AttrDef.ListValue"]
ListListInt = _MESSAGE_CLASSES["AttrDef.ListListInt"]
ListListFloat = _MESSAGE_CLASSES["AttrDef.ListListFloat"]
NamedAttrs = _MESSAGE_CLASSES["NamedAttrs"]
ShapeDef = _MESSAGE_CLASSES["ShapeDef"]
TensorDescriptor = _MESSAGE_CLASSES["TensorDescriptor"]
TensorDef = _MESSAGE_CLASSES["TensorDef"]
OpDef = _MESSAGE_CLASSES["OpDef"]
GraphDef = _MESSAGE_CLASSES["GraphDef"]
ModelDef = _MESSAGE_CLASSES["ModelDef"]


def decode_model_def(data) -> "ModelDef":
    model_def = ModelDef()
    try:
        model_def.ParseFromString(bytes(data))
    except (DecodeError, ValueError) as ex:
        message = str(ex) or type(ex).__name__
        raise SchemaDecodeError(
            f"File format is not ge.proto.ModelDef ({message.rstrip('.')})."
        ) from ex
    return model_def
