import json

import numpy as np
import onnx
import pytest

import om2graph
from om2graph.export import _onnx_elem_type, export_onnx, model_to_dict

from om_fixtures import conv_weights, make_conv_ops, make_desc, make_om, make_op


@pytest.fixture
def conv_model():
    return om2graph.load(om_bytes=make_om(make_conv_ops(), weights=conv_weights()))


def _attributes(node: onnx.NodeProto):
    return {attr.name: onnx.helper.get_attribute_value(attr) for attr in node.attribute}


def test_model_to_dict_is_json_serializable(conv_model) -> None:
    summary = model_to_dict(conv_model)
    text = json.dumps(summary)
    assert "conv_w" in text
    assert summary["header"]["name"] == "test_model"
    assert summary["header"]["type"] == "standard model"
    assert summary["header"]["platform_version"] == "1.0"
    assert summary["devices"] is None
    conv = summary["graphs"][0]["nodes"][1]
    assert conv["type"] == "Convolution"
    assert conv["inputs"][1]["arguments"][0] == {
        "name": "conv_w",
        "type": "float32[2,3,1,1]",
        "denotation": "FRACTAL_Z NCHW",
        "initializer": True,
    }
    assert {a["name"]: a["value"] for a in conv["attributes"]} == {"groups": 1, "strides": [1, 1]}


def test_export_onnx_is_valid(conv_model) -> None:
    model = export_onnx(conv_model.graphs[0])
    onnx.checker.check_model(model)
    assert {opset.domain for opset in model.opset_import} == {"", "ai.om"}
    assert [node.op_type for node in model.graph.node] == ["Data", "Convolution", "Relu"]
    assert all(node.domain == "ai.om" for node in model.graph.node)
    assert [vi.name for vi in model.graph.output] == ["relu"]


def test_export_onnx_initializers(conv_model) -> None:
    model = export_onnx(conv_model.graphs[0])
    initializers = {t.name: onnx.numpy_helper.to_array(t) for t in model.graph.initializer}
    assert sorted(initializers) == ["conv_b", "conv_w"]
    assert initializers["conv_w"].shape == (2, 3, 1, 1)
    assert np.allclose(initializers["conv_b"], [0.5, -0.5])


def test_export_onnx_keeps_control_dependencies_and_device(conv_model) -> None:
    model = export_onnx(conv_model.graphs[0])
    nodes = {node.name: node for node in model.graph.node}
    assert _attributes(nodes["relu"])["_control_dependencies"] == [b"data"]
    conv_attributes = _attributes(nodes["conv"])
    assert conv_attributes["_device"] == b"npu0"
    assert conv_attributes["groups"] == 1
    assert conv_attributes["strides"] == [1, 1]


def test_export_onnx_orders_nodes_topologically() -> None:
    ops = [
        make_op("second", "Relu", inputs=["first:0"], input_desc=[make_desc(1, [4])], output_desc=[make_desc(1, [4])]),
        make_op("first", "Relu", inputs=["x:0"], input_desc=[make_desc(1, [4])], output_desc=[make_desc(1, [4])]),
    ]
    model = om2graph.load(om_bytes=make_om(ops))
    exported = export_onnx(model.graphs[0])
    assert [node.name for node in exported.graph.node] == ["first", "second"]
    assert [vi.name for vi in exported.graph.input] == ["x"]
    onnx.checker.check_model(exported)


def test_export_onnx_rejects_non_graphs() -> None:
    with pytest.raises(TypeError):
        export_onnx(object())


def test_export_onnx_keeps_attributes_named_like_node_fields() -> None:
    op = make_op("n", "Relu", inputs=["x:0"], input_desc=[make_desc(1, [4])], output_desc=[make_desc(1, [4])])
    op.attr["name"].s = b"inner"
    op.attr["domain"].s = b"orig"
    op.attr["doc_string"].i = 3
    model = om2graph.load(om_bytes=make_om([op]))
    exported = export_onnx(model.graphs[0])
    onnx.checker.check_model(exported)
    node = exported.graph.node[0]
    assert node.name == "n"
    assert node.domain == "ai.om"
    assert _attributes(node) == {"doc_string": 3, "domain": b"orig", "name": b"inner"}


@pytest.mark.parametrize(
    "dtype, elem_type",
    [
        ("float32", onnx.TensorProto.FLOAT),
        ("int64", onnx.TensorProto.INT64),
        ("string", onnx.TensorProto.STRING),
        ("bfloat16", onnx.TensorProto.BFLOAT16),
        ("resource", onnx.TensorProto.UNDEFINED),
        ("undefined", onnx.TensorProto.UNDEFINED),
        (None, onnx.TensorProto.UNDEFINED),
    ],
)
def test_onnx_elem_type(dtype, elem_type) -> None:
    assert _onnx_elem_type(dtype) == elem_type


def test_export_onnx_string_edge_type() -> None:
    ops = [make_op("n", "Identity", inputs=["x:0"], input_desc=[make_desc(13, [2])], output_desc=[make_desc(13, [2])])]
    exported = export_onnx(om2graph.load(om_bytes=make_om(ops)).graphs[0])
    assert exported.graph.input[0].type.tensor_type.elem_type == onnx.TensorProto.STRING
    assert exported.graph.output[0].type.tensor_type.elem_type == onnx.TensorProto.STRING
