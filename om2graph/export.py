from __future__ import annotations

from collections import deque
from typing import Any, Dict, List, Optional

import numpy as np
import onnx
from onnx import helper, numpy_helper

from om2graph.graph import Argument, Graph, Model, Node
from om2graph.tensor import Tensor, TensorShape, TensorType
from om2graph.utils.enums import MODEL_MODES, MODEL_TYPES, OM_DTYPES_TO_NUMPY_DTYPES

OM_DOMAIN = "ai.om"
OM_DOMAIN_VERSION = 1

# No numpy counterpart.
OM_DTYPES_TO_ONNX_ELEM_TYPES = {
    "string": onnx.TensorProto.STRING,
    "bfloat16": onnx.TensorProto.BFLOAT16,
}


def _json_value(value: Any) -> Any:
    if isinstance(value, Tensor):
        return {
            "kind": value.kind,
            "type": str(value.type),
            "size": len(value.data) if value.data is not None else None,
        }
    if isinstance(value, TensorShape):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    if isinstance(value, (list, tuple)):
        return [_json_value(v) for v in value]
    if isinstance(value, np.generic):
        return value.item()
    return value


def _argument_to_dict(argument: Argument) -> Dict[str, Any]:
    tensor_type = argument.type
    return {
        "name": argument.name,
        "type": str(tensor_type) if tensor_type is not None else None,
        "denotation": tensor_type.denotation if tensor_type is not None else "",
        "initializer": argument.initializer is not None,
    }


def _node_to_dict(node: Node) -> Dict[str, Any]:
    return {
        "name": node.name,
        "type": node.type["name"],
        "inputs": [
            {
                "name": parameter.name,
                "arguments": [_argument_to_dict(a) for a in parameter.arguments],
            } for parameter in node.inputs
        ],
        "outputs": [
            {
                "name": parameter.name,
                "arguments": [_argument_to_dict(a) for a in parameter.arguments],
            } for parameter in node.outputs
        ],
        "attributes": [
            {
                "name": attribute.name,
                "type": attribute.type,
                "value": _json_value(attribute.value),
            } for attribute in node.attributes
        ],
        "control_dependencies": list(node.control_dependencies),
        "device": _json_value(node.device),
    }


def model_to_dict(model: Model) -> Dict[str, Any]:
    file = model.file
    return {
        "format": model.format,
        "name": model.name,
        "version": model.version,
        "header": {
            "name": file.name,
            "version": file.version,
            "type": MODEL_TYPES.get(file.type, str(file.type)),
            "mode": MODEL_MODES.get(file.mode, str(file.mode)),
            "is_encrypt": file.is_encrypt,
            "is_checksum": file.is_checksum,
            "ops": file.ops,
            "ir_version": file.ir_version,
            "model_num": file.model_num,
            "platform_version": bytes(file.platform_version).rstrip(b"\x00").decode("ascii", errors="replace"),
            "platform_type": file.platform_type,
        },
        "partitions": [
            {
                "type": partition.type_name,
                "offset": partition.offset,
                "size": partition.size,
            } for partition in file.partitions
        ],
        "devices": dict(file.devices) if file.devices is not None else None,
        "graphs": [
            {
                "name": graph.name,
                "nodes": [_node_to_dict(node) for node in graph.nodes],
            } for graph in model.graphs
        ],
    }


def _onnx_elem_type(dtype: Optional[str]) -> int:
    if dtype in OM_DTYPES_TO_ONNX_ELEM_TYPES:
        return OM_DTYPES_TO_ONNX_ELEM_TYPES[dtype]
    np_dtype = OM_DTYPES_TO_NUMPY_DTYPES.get(dtype)
    if np_dtype is None:
        return onnx.TensorProto.UNDEFINED
    try:
        return helper.np_dtype_to_tensor_dtype(np_dtype)
    except (KeyError, ValueError):
        return onnx.TensorProto.UNDEFINED


def _onnx_shape(tensor_type: Optional[TensorType]) -> Optional[List[Optional[int]]]:
    if tensor_type is None or tensor_type.shape.dimensions is None:
        return None
    return [dim if dim is not None and dim > 0 else None for dim in tensor_type.shape.dimensions]


def _value_info(name: str, tensor_type: Optional[TensorType]) -> onnx.ValueInfoProto:
    return helper.make_tensor_value_info(
        name,
        _onnx_elem_type(tensor_type.dtype if tensor_type is not None else None),
        _onnx_shape(tensor_type),
    )


def _convert_attr_value(value: Any) -> Any:
    if isinstance(value, Tensor):
        values = value.values
        return numpy_helper.from_array(np.array(values)) if values is not None else None
    if isinstance(value, TensorShape):
        return str(value)
    if isinstance(value, memoryview):
        return bytes(value)
    if isinstance(value, (list, tuple)):
        if len(value) == 0:
            return None
        return [_convert_attr_value(v) for v in value]
    return value


def _toposort(nodes: List[Node]) -> List[Node]:
    producer_index: Dict[str, int] = {}
    for idx, node in enumerate(nodes):
        for parameter in node.outputs:
            for argument in parameter.arguments:
                producer_index.setdefault(argument.name, idx)

    indegree = [0 for _ in nodes]
    dependents: List[List[int]] = [[] for _ in nodes]
    for idx, node in enumerate(nodes):
        deps = set()
        for parameter in node.inputs:
            for argument in parameter.arguments:
                producer = producer_index.get(argument.name)
                if producer is not None and producer != idx and argument.initializer is None:
                    deps.add(producer)
        indegree[idx] = len(deps)
        for dep in deps:
            dependents[dep].append(idx)

    ready = deque([idx for idx, deg in enumerate(indegree) if deg == 0])
    order: List[int] = []
    while ready:
        idx = ready.popleft()
        order.append(idx)
        for nxt in dependents[idx]:
            indegree[nxt] -= 1
            if indegree[nxt] == 0:
                ready.append(nxt)
    if len(order) != len(nodes):
        placed = set(order)
        order.extend([idx for idx in range(len(nodes)) if idx not in placed])
    return [nodes[idx] for idx in order]


def export_onnx(graph: Graph, opset: int = 13) -> onnx.ModelProto:
    """Export a normalized graph as an ONNX model of ``ai.om`` custom ops."""
    if not isinstance(graph, Graph):
        raise TypeError("export_onnx expects a Graph")

    nodes = _toposort(graph.nodes)
    initializers: Dict[str, onnx.TensorProto] = {}
    produced: Dict[str, Optional[TensorType]] = {}
    consumed: Dict[str, Optional[TensorType]] = {}
    serialized_nodes = []

    for node in nodes:
        input_names = []
        for parameter in node.inputs:
            for argument in parameter.arguments:
                input_names.append(argument.name)
                values = argument.initializer.values if argument.initializer is not None else None
                if values is not None:
                    if argument.name not in initializers:
                        initializers[argument.name] = numpy_helper.from_array(
                            np.array(values), name=argument.name
                        )
                else:
                    consumed.setdefault(argument.name, argument.type)
        output_names = []
        for parameter in node.outputs:
            for argument in parameter.arguments:
                output_names.append(argument.name)
                produced.setdefault(argument.name, argument.type)

        attrs: Dict[str, Any] = {}
        for attribute in node.attributes:
            converted = _convert_attr_value(attribute.value)
            if converted is not None:
                attrs[attribute.name] = converted
        if node.control_dependencies:
            attrs["_control_dependencies"] = list(node.control_dependencies)
        if node.device is not None:
            attrs["_device"] = _convert_attr_value(node.device)

        # Attribute names may collide with make_node keywords (name, domain).
        onnx_node = helper.make_node(
            node.type["name"],
            input_names,
            output_names,
            name=node.name,
            domain=OM_DOMAIN,
        )
        onnx_node.attribute.extend(
            helper.make_attribute(key, value) for key, value in sorted(attrs.items())
        )
        serialized_nodes.append(onnx_node)

    serialized_inputs = [
        _value_info(name, tensor_type)
        for name, tensor_type in consumed.items()
        if name not in produced and name not in initializers
    ]
    serialized_outputs = [
        _value_info(name, tensor_type)
        for name, tensor_type in produced.items()
        if name not in consumed
    ]

    graph_proto = helper.make_graph(
        nodes=serialized_nodes,
        name=graph.name or "graph",
        inputs=serialized_inputs,
        outputs=serialized_outputs,
        initializer=list(initializers.values()),
    )
    return helper.make_model(
        graph_proto,
        opset_imports=[
            helper.make_opsetid("", opset),
            helper.make_opsetid(OM_DOMAIN, OM_DOMAIN_VERSION),
        ],
    )


__all__ = [
    "export_onnx",
    "model_to_dict",
]
