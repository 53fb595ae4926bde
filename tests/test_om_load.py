import json
import sys

import onnx
import pytest

import om2graph
from om2graph.errors import ContainerDecodeError, FormatError, OMError, SchemaDecodeError
from om2graph.metadata import Metadata
from om2graph.utils import logging as om_logging
from om2graph.utils.enums import MODEL_DEF, MODEL_WEIGHT

from om_fixtures import conv_weights, make_container, make_conv_ops, make_om


@pytest.fixture
def conv_om() -> bytes:
    return make_om(make_conv_ops(), weights=conv_weights(), devices=[("npu", 0)])


@pytest.fixture(autouse=True)
def _restore_log_level(monkeypatch):
    monkeypatch.setattr(om_logging, "log_level", om_logging.get_log_level())


def test_match(conv_om) -> None:
    assert om2graph.match(conv_om) == "om"
    assert om2graph.match(b"\x08\x01PK") is None
    assert om2graph.match(b"") is None


def test_load_from_bytes(conv_om) -> None:
    model = om2graph.load(om_bytes=conv_om)
    assert model.format == "DaVinci OM"
    assert model.name == "model"
    assert model.version == 1
    assert model.file.devices == {"npu": 0}
    assert len(model.graphs) == 1
    conv = next(node for node in model.graphs[0].nodes if node.name == "conv")
    assert [p.name for p in conv.inputs] == ["x", "filter", "bias"]
    assert conv.inputs[1].arguments[0].initializer.values.ravel().tolist() == [1.0, 2.0, 3.0, 4.0, 5.0, 6.0]


def test_load_from_path(tmp_path, conv_om) -> None:
    path = tmp_path / "conv.om"
    path.write_bytes(conv_om)
    model = om2graph.load(input_om_file_path=str(path), metadata=Metadata(None))
    conv = next(node for node in model.graphs[0].nodes if node.name == "conv")
    # Without a catalog the names are positional.
    assert [p.name for p in conv.inputs] == ["input", "input1", "input2"]


def test_load_requires_a_source() -> None:
    with pytest.raises(ValueError):
        om2graph.load()


def test_load_rejects_other_formats() -> None:
    with pytest.raises(FormatError) as excinfo:
        om2graph.load(om_bytes=b"PK\x03\x04" + bytes(300))
    assert excinfo.value.to_dict()["stage"] == "detect"


def test_load_without_model_partition() -> None:
    buffer = make_container([(MODEL_WEIGHT, conv_weights())])
    with pytest.raises(OMError) as excinfo:
        om2graph.load(om_bytes=buffer)
    assert "model definition" in excinfo.value.message


@pytest.mark.parametrize("payload", [b"\x0a\x05ab", b"\xff\xff\xff"])
def test_load_with_corrupt_model_definition(payload) -> None:
    buffer = make_container([(MODEL_DEF, payload)])
    with pytest.raises(SchemaDecodeError) as excinfo:
        om2graph.load(om_bytes=buffer)
    assert excinfo.value.message.startswith("File format is not ge.proto.ModelDef")
    assert excinfo.value.stage == "schema"


def test_load_respects_max_buffer_size(conv_om) -> None:
    with pytest.raises(ContainerDecodeError):
        om2graph.load(om_bytes=conv_om, max_buffer_size=len(conv_om) - 1)
    assert om2graph.load(om_bytes=conv_om, max_buffer_size=len(conv_om)).graphs


def _run_main(monkeypatch, *args) -> None:
    monkeypatch.setattr(sys, "argv", ["om2graph", *args])
    om2graph.main()


def test_cli_prints_summary(tmp_path, conv_om, monkeypatch, capsys) -> None:
    path = tmp_path / "conv.om"
    path.write_bytes(conv_om)
    _run_main(monkeypatch, "-i", str(path))
    out = capsys.readouterr().out
    assert "DaVinci OM" in out
    assert "conv" in out
    assert "MODEL_WEIGHT" in out


def test_cli_writes_json(tmp_path, conv_om, monkeypatch) -> None:
    path = tmp_path / "conv.om"
    path.write_bytes(conv_om)
    json_path = tmp_path / "conv.json"
    _run_main(monkeypatch, "-i", str(path), "-oj", str(json_path), "-n")
    summary = json.loads(json_path.read_text(encoding="utf-8"))
    assert summary["format"] == "DaVinci OM"
    assert summary["devices"] == {"npu": 0}
    assert [p["type"] for p in summary["partitions"]] == ["MODEL_DEF", "MODEL_WEIGHT", "DEVICE_CONFIG"]
    nodes = summary["graphs"][0]["nodes"]
    assert [node["name"] for node in nodes] == ["data", "conv", "relu"]
    assert nodes[1]["device"] == "npu0"
    assert nodes[2]["control_dependencies"] == ["data"]


def test_cli_writes_onnx(tmp_path, conv_om, monkeypatch) -> None:
    path = tmp_path / "conv.om"
    path.write_bytes(conv_om)
    onnx_path = tmp_path / "conv.onnx"
    _run_main(monkeypatch, "-i", str(path), "-oo", str(onnx_path), "-n")
    model = onnx.load(str(onnx_path))
    assert [node.op_type for node in model.graph.node] == ["Data", "Convolution", "Relu"]


def test_cli_missing_file(tmp_path, monkeypatch, capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        _run_main(monkeypatch, "-i", str(tmp_path / "missing.om"))
    assert excinfo.value.code == 1
    assert "does not exist" in capsys.readouterr().out


def test_cli_reports_decode_errors(tmp_path, monkeypatch, capsys) -> None:
    path = tmp_path / "broken.om"
    path.write_bytes(make_container([(MODEL_DEF, b"\xff\xff\xff")]))
    with pytest.raises(SystemExit) as excinfo:
        _run_main(monkeypatch, "-i", str(path))
    assert excinfo.value.code == 1
    assert "[schema]" in capsys.readouterr().out


def test_cli_version(monkeypatch, capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        _run_main(monkeypatch, "-V")
    assert excinfo.value.code == 0
    assert capsys.readouterr().out.strip() == om2graph.__version__
