from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from om2graph.attribute import Attribute, decode_attr_value
from om2graph.errors import ContainerDecodeError
from om2graph.metadata import Metadata
from om2graph.tensor import Tensor, TensorShape, TensorType
from om2graph.utils.enums import CONSTANT_OP, INPUT_PRODUCING_OPS, dtype

UNNAMED_PRODUCER = "internal_unnamed"
CONTROL_INDEX = "-1"


def _shape_dims(desc: Any) -> Optional[List[int]]:
    if desc is None or not desc.HasField("shape"):
        return None
    return [int(dim) for dim in desc.shape.dim]


def _positional_name(prefix: str, index: int) -> str:
    return prefix + ("" if index == 0 else str(index))


def _schema_name(schema: Dict[str, Any], key: str, index: int, prefix: str) -> str:
    entries = schema.get(key) or []
    if index < len(entries):
        name = entries[index].get("name") if isinstance(entries[index], dict) else None
        if name:
            return name
    return _positional_name(prefix, index)


def split_input_reference(reference: str) -> Tuple[str, str]:
    """Split ``producer:index`` at its last colon."""
    pos = reference.rfind(":")
    if pos < 0:
        return reference, "0"
    name = UNNAMED_PRODUCER if pos == 0 else reference[:pos]
    return name, reference[pos + 1:]


def _slice_weights(weights: memoryview, offset: int, size: int, name: str) -> memoryview:
    if offset < 0 or size < 0 or offset + size > len(weights):
        raise ContainerDecodeError(
            f"Weights of constant '{name}' at offset {offset} with size {size} "
            f"are outside the weight partition (length {len(weights)})."
        )
    return weights[offset:offset + size]


def constant_tensor(
    producer: Any,
    weights: Optional[memoryview],
    format: Optional[str],
) -> Tensor:
    value = producer.attr["value"].t
    desc = value.desc
    shape = _shape_dims(desc)
    if "origin_shape" in desc.attr:
        shape = [int(dim) for dim in desc.attr["origin_shape"].list.i]
    data = None
    if len(value.data) > 0:
        data = value.data
    elif weights is not None:
        if "merged_offset" in desc.attr:
            offset = int(desc.attr["merged_offset"].i)
        else:
            offset = int(desc.data_offset)
        data = _slice_weights(weights, offset, int(desc.weight_size), producer.name)
    tensor_type = TensorType(dtype(desc.dtype), shape, format, desc.layout)
    return Tensor("Constant", tensor_type, data)


class Argument:

    def __init__(
        self,
        name: str,
        type: Optional[TensorType] = None,
        initializer: Optional[Tensor] = None,
    ) -> None:
        self._name = name
        self._type = type
        self._initializer = initializer

    @property
    def name(self) -> str:
        return self._name

    @property
    def type(self) -> Optional[TensorType]:
        if self._initializer is not None:
            return self._initializer.type
        return self._type

    @property
    def initializer(self) -> Optional[Tensor]:
        return self._initializer

    def __repr__(self) -> str:
        return f"Argument({self._name!r}, {self.type})"


class Parameter:

    def __init__(self, name: str, visible: bool, arguments: List[Argument]) -> None:
        self._name = name
        self._visible = visible
        self._arguments = arguments

    @property
    def name(self) -> str:
        return self._name

    @property
    def visible(self) -> bool:
        return self._visible

    @property
    def arguments(self) -> List[Argument]:
        return self._arguments

    def __repr__(self) -> str:
        return f"Parameter({self._name!r}, {self._arguments!r})"


class Node:

    def __init__(
        self,
        metadata: Metadata,
        op: Any,
        ops_by_name: Dict[str, Any],
        weights: Optional[memoryview],
    ) -> None:
        self._name = op.name
        self._type = metadata.type(op.type) or {"name": op.type}
        self._inputs: List[Parameter] = []
        self._outputs: List[Parameter] = []
        self._attributes: List[Attribute] = []
        self._chain: List[Any] = []
        self._control_dependencies: List[str] = []
        self._device: Any = None

        input_descs = list(op.input_desc)
        # Advances once per data input; control and empty entries have no descriptor.
        input_index = 0
        for i, reference in enumerate(op.input):
            if reference == "":
                continue
            name, src_index = split_input_reference(reference)
            if src_index == CONTROL_INDEX:
                self._control_dependencies.append(name)
                continue
            input_name = _schema_name(self._type, "inputs", i, "input")
            desc = input_descs[input_index] if input_index < len(input_descs) else None
            format = desc.layout if desc is not None else None
            producer = ops_by_name.get(name)
            if producer is not None and producer.type == CONSTANT_OP and "value" in producer.attr:
                tensor = constant_tensor(producer, weights, format)
                argument = Argument(name, None, tensor)
            else:
                data_type = dtype(desc.dtype) if desc is not None else "undefined"
                tensor_type = TensorType(data_type, _shape_dims(desc), format, None)
                identifier = name if src_index == "0" else f"{name}:{src_index}"
                argument = Argument(identifier, tensor_type, None)
            self._inputs.append(Parameter(input_name, True, [argument]))
            input_index += 1

        for i, output_desc in enumerate(op.output_desc):
            shape = _shape_dims(output_desc)
            if shape is None and op.type in INPUT_PRODUCING_OPS and len(input_descs) > 0:
                shape = _shape_dims(input_descs[0])
            tensor_type = TensorType(dtype(output_desc.dtype), shape, output_desc.layout)
            identifier = self._name if i == 0 else f"{self._name}:{i}"
            argument = Argument(identifier, tensor_type, None)
            output_name = _schema_name(self._type, "outputs", i, "output")
            self._outputs.append(Parameter(output_name, True, [argument]))

        for name in sorted(op.attr):
            value = op.attr[name]
            if name == "device":
                _, self._device = decode_attr_value(value).resolve()
                continue
            self._attributes.append(
                Attribute(metadata.attribute(op.type, name), name, value, True)
            )

    @property
    def name(self) -> str:
        return self._name or ""

    @property
    def type(self) -> Dict[str, Any]:
        return self._type

    @property
    def device(self) -> Any:
        return self._device

    @property
    def inputs(self) -> List[Parameter]:
        return self._inputs

    @property
    def outputs(self) -> List[Parameter]:
        return self._outputs

    @property
    def attributes(self) -> List[Attribute]:
        return self._attributes

    @property
    def chain(self) -> List[Any]:
        return self._chain

    @property
    def control_dependencies(self) -> List[str]:
        return self._control_dependencies

    def __repr__(self) -> str:
        return f"Node({self.name!r}, {self._type['name']!r})"


class Graph:

    def __init__(
        self,
        metadata: Metadata,
        graph: Any,
        weights: Optional[memoryview] = None,
    ) -> None:
        self._name = graph.name
        self._nodes: List[Node] = []
        self._inputs: List[Parameter] = []
        self._outputs: List[Parameter] = []
        ops_by_name: Dict[str, Any] = {}
        for op in graph.op:
            ops_by_name.setdefault(op.name, op)
        for op in graph.op:
            if op.type == CONSTANT_OP:
                continue
            self._nodes.append(Node(metadata, op, ops_by_name, weights))

    @property
    def name(self) -> str:
        return self._name

    @property
    def nodes(self) -> List[Node]:
        return self._nodes

    @property
    def inputs(self) -> List[Parameter]:
        return self._inputs

    @property
    def outputs(self) -> List[Parameter]:
        return self._outputs


class Model:

    def __init__(self, metadata: Metadata, file: Any, model_def: Any) -> None:
        self._file = file
        self._name = model_def.name
        self._version = int(model_def.version)
        self._graphs = [
            Graph(metadata, graph, file.weights) for graph in model_def.graph
        ]

    @property
    def format(self) -> str:
        return "DaVinci OM"

    @property
    def name(self) -> str:
        return self._name

    @property
    def version(self) -> int:
        return self._version

    @property
    def file(self) -> Any:
        return self._file

    @property
    def graphs(self) -> List[Graph]:
        return self._graphs


__all__ = [
    "Argument",
    "Graph",
    "Model",
    "Node",
    "Parameter",
    "Tensor",
    "TensorShape",
    "TensorType",
    "constant_tensor",
    "split_input_reference",
]
