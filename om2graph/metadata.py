from __future__ import annotations

import json
import os
from functools import lru_cache
from typing import Any, Dict, Optional

from om2graph.utils.logging import debug, warn

DEFAULT_METADATA_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "om-metadata.json")


class Metadata:
    """Operator catalog keyed by op type.

    Each entry looks like ``{"name", "inputs": [{"name"}], "outputs":
    [{"name"}], "attributes": [{"name", ...}]}``.
    """

    def __init__(self, data: Optional[str] = None) -> None:
        self._map: Dict[str, Dict[str, Any]] = {}
        self._attributes: Dict[str, Optional[Dict[str, Any]]] = {}
        if data:
            self._map = {item["name"]: item for item in json.loads(data)}

    def __len__(self) -> int:
        return len(self._map)

    def type(self, name: str) -> Optional[Dict[str, Any]]:
        return self._map.get(name)

    def attribute(self, type_name: str, name: str) -> Optional[Dict[str, Any]]:
        key = f"{type_name}:{name}"
        if key not in self._attributes:
            schema = self.type(type_name)
            if schema and schema.get("attributes"):
                for attribute in schema["attributes"]:
                    self._attributes[f"{type_name}:{attribute['name']}"] = attribute
            if key not in self._attributes:
                self._attributes[key] = None
        return self._attributes[key]

    @staticmethod
    def open(path: Optional[str] = None) -> "Metadata":
        resolved = path or os.environ.get("OM2GRAPH_METADATA_PATH", "") or DEFAULT_METADATA_PATH
        return _load_metadata(os.path.abspath(resolved))


@lru_cache(maxsize=16)
def _load_metadata(path: str) -> Metadata:
    try:
        with open(path, "r", encoding="utf-8") as f:
            metadata = Metadata(f.read())
    except (OSError, ValueError, KeyError, TypeError) as ex:
        warn(f"Operator metadata could not be loaded, using an empty catalog. path: {path} ({ex})")
        return Metadata(None)
    debug(f"Operator metadata: {len(metadata)} types from {path}")
    return metadata
