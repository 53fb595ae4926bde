from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Dict, List, Optional

from om2graph.container.reader import BinaryReader, BufferLike
from om2graph.errors import ContainerDecodeError, FormatError
from om2graph.utils.enums import (
    CUST_AICPU_KERNELS,
    DEVICE_CONFIG,
    MODEL_DEF,
    MODEL_WEIGHT,
    OM_HEADER_REGION_SIZE,
    OM_PARTITION_ENTRY_SIZE,
    OM_SIGNATURE,
    PARTITION_TYPES,
    TASK_INFO,
    TBE_KERNELS,
)
from om2graph.utils.logging import debug


@dataclass(frozen=True)
class Partition:
    type: int
    offset: int
    size: int

    @property
    def type_name(self) -> str:
        return PARTITION_TYPES.get(self.type, str(self.type))


def partition_base(partition_count: int) -> int:
    return OM_HEADER_REGION_SIZE + 4 + OM_PARTITION_ENTRY_SIZE * int(partition_count)


def _resolve_max_buffer_size(max_buffer_size: Optional[int]) -> Optional[int]:
    if max_buffer_size is not None:
        return int(max_buffer_size)
    value = os.environ.get("OM2GRAPH_MAX_BUFFER_SIZE", "")
    if value.strip() == "":
        return None
    return int(value)


def _decode_devices(buffer: memoryview) -> Dict[str, int]:
    reader = BinaryReader(buffer)
    devices: Dict[str, int] = {}
    while reader.position < reader.length:
        length = reader.uint32()
        name = bytes(reader.read(length)).decode("ascii", errors="replace")
        devices[name] = reader.uint32()
    return devices


class OMFile:
    """Header, partition table and partition payloads of an OM container."""

    def __init__(self, reader: BinaryReader) -> None:
        self.header = bytes(reader.read(4))
        self.size = reader.uint32()
        self.version = reader.uint32()
        self.checksum = reader.read(64)
        reader.skip(4)
        self.is_encrypt = reader.byte()
        self.is_checksum = reader.byte()
        self.type = reader.byte() # 0=IR model, 1=standard model, 2=OM Tiny model
        self.mode = reader.byte() # 0=offline, 1=online
        self.name = bytes(reader.read(32)).decode("utf-8", errors="replace").rstrip("\x00")
        self.ops = reader.uint32()
        self.userdefineinfo = reader.read(32)
        self.ir_version = reader.uint32()
        self.model_num = reader.uint32()
        self.platform_version = reader.read(20)
        self.platform_type = reader.byte()

        self.model: Optional[memoryview] = None
        self.weights: Optional[memoryview] = None
        self.devices: Optional[Dict[str, int]] = None

        reader.seek(0)
        reader.skip(self.size)
        count = reader.uint32()
        self.partitions: List[Partition] = [
            Partition(
                type=reader.uint32(),
                offset=reader.uint32(),
                size=reader.uint32(),
            ) for _ in range(count)
        ]
        base = partition_base(len(self.partitions))
        debug(
            f"OM container: name={self.name!r} version={self.version} "
            f"partitions={len(self.partitions)} base={base}"
        )
        for partition in self.partitions:
            reader.seek(base + partition.offset)
            buffer = reader.read(partition.size)
            debug(
                f"  partition {partition.type_name}: "
                f"offset={partition.offset} size={partition.size}"
            )
            if partition.type == MODEL_DEF:
                self.model = buffer
            elif partition.type == MODEL_WEIGHT:
                self.weights = buffer
            elif partition.type in (TASK_INFO, TBE_KERNELS, CUST_AICPU_KERNELS):
                continue
            elif partition.type == DEVICE_CONFIG:
                self.devices = _decode_devices(buffer)
            else:
                raise ContainerDecodeError(
                    f"Unknown partition type '{partition.type}'.",
                    partition_type=partition.type,
                )

    @property
    def partition_base(self) -> int:
        return partition_base(len(self.partitions))

    @staticmethod
    def match(buffer: BufferLike) -> bool:
        return bytes(memoryview(buffer)[:len(OM_SIGNATURE)]) == OM_SIGNATURE

    @classmethod
    def open(
        cls,
        buffer: BufferLike,
        max_buffer_size: Optional[int] = None,
    ) -> "OMFile":
        if not cls.match(buffer):
            raise FormatError("Invalid OM signature; expected 'IMOD'.")
        limit = _resolve_max_buffer_size(max_buffer_size)
        length = len(memoryview(buffer).cast("B"))
        if limit is not None and length > limit:
            raise ContainerDecodeError(
                f"OM buffer of {length} bytes exceeds the maximum of {limit} bytes."
            )
        return cls(BinaryReader(buffer))
