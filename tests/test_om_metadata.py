import json

import pytest

from om2graph.metadata import DEFAULT_METADATA_PATH, Metadata, _load_metadata
from om2graph.utils import logging as om_logging


def _write_catalog(path, entries) -> str:
    path.write_text(json.dumps(entries), encoding="utf-8")
    return str(path)


def test_bundled_catalog_loads() -> None:
    metadata = Metadata.open()
    assert len(metadata) > 0
    assert metadata.type("Convolution")["inputs"][0]["name"] == "x"
    assert metadata.type("Relu")["outputs"] == [{"name": "y"}]
    assert metadata.type("NoSuchOp") is None


def test_open_is_cached_per_path() -> None:
    assert Metadata.open() is Metadata.open(DEFAULT_METADATA_PATH)


def test_attribute_lookup_by_type_name() -> None:
    metadata = Metadata(json.dumps([
        {"name": "Pool", "attributes": [{"name": "ksize", "type": "int64[]"}]},
        {"name": "Relu"},
    ]))
    assert metadata.attribute("Pool", "ksize") == {"name": "ksize", "type": "int64[]"}
    assert metadata.attribute("Pool", "missing") is None
    assert metadata.attribute("Relu", "ksize") is None
    assert metadata.attribute("Unknown", "ksize") is None
    # Memoized misses stay misses.
    assert metadata.attribute("Pool", "missing") is None


def test_custom_catalog_path(tmp_path) -> None:
    path = _write_catalog(tmp_path / "custom.json", [{"name": "MyOp", "inputs": [{"name": "a"}]}])
    metadata = Metadata.open(path)
    assert len(metadata) == 1
    assert metadata.type("MyOp")["inputs"] == [{"name": "a"}]


def test_catalog_path_from_environment(tmp_path, monkeypatch) -> None:
    path = _write_catalog(tmp_path / "env.json", [{"name": "EnvOp"}])
    monkeypatch.setenv("OM2GRAPH_METADATA_PATH", path)
    metadata = Metadata.open()
    assert metadata.type("EnvOp") == {"name": "EnvOp"}


def test_missing_catalog_falls_back_to_empty(tmp_path, monkeypatch, capsys) -> None:
    monkeypatch.setattr(om_logging, "log_level", om_logging.LOG_LEVELS["warn"])
    metadata = Metadata.open(str(tmp_path / "absent.json"))
    assert len(metadata) == 0
    assert metadata.type("Convolution") is None
    assert "WARNING:" in capsys.readouterr().out


@pytest.mark.parametrize(
    "content",
    [
        "{not json",
        json.dumps([{"inputs": []}]),
        json.dumps([1, 2]),
    ],
)
def test_malformed_catalog_falls_back_to_empty(tmp_path, content) -> None:
    path = tmp_path / "broken.json"
    path.write_text(content, encoding="utf-8")
    _load_metadata.cache_clear()
    metadata = Metadata.open(str(path))
    assert len(metadata) == 0
