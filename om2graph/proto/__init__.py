from om2graph.proto.ge_ir import (
    AttrDef,
    GraphDef,
    ListListInt,
    ListValue,
    ModelDef,
    NamedAttrs,
    OpDef,
    ShapeDef,
    TensorDef,
    TensorDescriptor,
    decode_model_def,
)

__all__ = [
    "AttrDef",
    "GraphDef",
    "ListListInt",
    "ListValue",
    "ModelDef",
    "NamedAttrs",
    "OpDef",
    "ShapeDef",
    "TensorDef",
    "TensorDescriptor",
    "decode_model_def",
]
