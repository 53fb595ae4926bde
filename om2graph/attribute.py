from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from om2graph.tensor import Tensor, TensorShape, TensorType
from om2graph.utils.enums import OM_DTYPES

# (type tag, value) as shown to callers.
Resolved = Tuple[Optional[str], Any]


def _is_printable(value: bytes) -> bool:
    return all(0x20 <= c < 0x7f or c in (0x09, 0x0a, 0x0d) for c in value)


def _decode_code_units(value: bytes) -> str:
    # One UTF-16 code unit per byte, which is exactly latin-1.
    return bytes(value).decode("latin-1")


@dataclass(frozen=True)
class IntAttr:
    value: int

    def resolve(self) -> Resolved:
        return "int64", self.value


@dataclass(frozen=True)
class FloatAttr:
    value: float

    def resolve(self) -> Resolved:
        return "float32", self.value


@dataclass(frozen=True)
class BoolAttr:
    value: bool

    def resolve(self) -> Resolved:
        return "boolean", self.value


@dataclass(frozen=True)
class TensorAttr:
    data: bytes

    def resolve(self) -> Resolved:
        if len(self.data) == 0:
            return None, None
        tensor_type = TensorType("float32", [len(self.data) // 4])
        return "tensor", Tensor("Constant", tensor_type, self.data)


@dataclass(frozen=True)
class StringAttr:
    value: Union[str, bytes]

    def resolve(self) -> Resolved:
        if isinstance(self.value, str):
            return "string", self.value
        if _is_printable(self.value):
            return "string", bytes(self.value).decode("utf-8")
        return "string", self.value


@dataclass(frozen=True)
class ListAttr:
    s: List[bytes] = field(default_factory=list)
    b: List[bool] = field(default_factory=list)
    i: List[int] = field(default_factory=list)
    f: List[float] = field(default_factory=list)
    dt: List[int] = field(default_factory=list)
    shape: List[List[int]] = field(default_factory=list)

    def resolve(self) -> Resolved:
        if len(self.s) > 0:
            return "string[]", ", ".join(_decode_code_units(v) for v in self.s)
        if len(self.b) > 0:
            return "boolean[]", list(self.b)
        if len(self.i) > 0:
            return "int64[]", list(self.i)
        if len(self.f) > 0:
            return "float32[]", list(self.f)
        if len(self.dt) > 0:
            return "type[]", [
                OM_DTYPES[v] if 0 <= v < len(OM_DTYPES) else "?" for v in self.dt
            ]
        if len(self.shape) > 0:
            return "shape[]", [TensorShape(dims) for dims in self.shape]
        return None, []


@dataclass(frozen=True)
class EmptyAttr:
    kind: Optional[str] = None

    def resolve(self) -> Resolved:
        return None, None


AttrValue = Union[IntAttr, FloatAttr, BoolAttr, TensorAttr, StringAttr, ListAttr, EmptyAttr]

_ATTR_VALUE_TYPES = (IntAttr, FloatAttr, BoolAttr, TensorAttr, StringAttr, ListAttr, EmptyAttr)


def decode_attr_value(attr_def: Any) -> AttrValue:
    """Resolve the ``value`` oneof of a ``ge.proto.AttrDef`` into a variant."""
    kind = attr_def.WhichOneof("value")
    if kind == "i":
        return IntAttr(int(attr_def.i))
    if kind == "f":
        return FloatAttr(float(attr_def.f))
    if kind == "b":
        return BoolAttr(bool(attr_def.b))
    if kind == "bt":
        return TensorAttr(bytes(attr_def.bt))
    if kind == "s":
        return StringAttr(attr_def.s)
    if kind == "list":
        values = attr_def.list
        return ListAttr(
            s=[bytes(v) for v in values.s],
            b=[bool(v) for v in values.b],
            i=[int(v) for v in values.i],
            f=[float(v) for v in values.f],
            dt=[int(v) for v in values.dt],
        )
    if kind == "list_list_int":
        return ListAttr(
            shape=[[int(v) for v in item.list_i] for item in attr_def.list_list_int.list_list_i],
        )
    return EmptyAttr(kind)


class Attribute:

    def __init__(
        self,
        metadata: Optional[Dict[str, Any]],
        name: str,
        value: Any,
        visible: bool = True,
    ) -> None:
        self._name = name
        self._metadata = metadata
        self._visible = visible
        variant = value if isinstance(value, _ATTR_VALUE_TYPES) else decode_attr_value(value)
        self._type, self._value = variant.resolve()

    @property
    def name(self) -> str:
        return self._name

    @property
    def metadata(self) -> Optional[Dict[str, Any]]:
        return self._metadata

    @property
    def type(self) -> Optional[str]:
        return self._type

    @property
    def value(self) -> Any:
        return self._value

    @property
    def visible(self) -> bool:
        return self._visible

    def __repr__(self) -> str:
        return f"Attribute({self._name!r}, type={self._type!r}, value={self._value!r})"
