from om2graph.container.file import OMFile, Partition, partition_base
from om2graph.container.reader import BinaryReader

__all__ = [
    "BinaryReader",
    "OMFile",
    "Partition",
    "partition_base",
]
