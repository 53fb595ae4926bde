from __future__ import annotations

from typing import Any, List, Optional, Sequence, Union

import numpy as np

from om2graph.utils.enums import OM_DTYPES_TO_NUMPY_DTYPES

TensorData = Union[bytes, bytearray, memoryview]


class TensorShape:

    def __init__(self, dimensions: Optional[Sequence[Optional[int]]] = None) -> None:
        self._dimensions = (
            [int(dim) if dim is not None else None for dim in dimensions]
            if dimensions is not None
            else None
        )

    @property
    def dimensions(self) -> Optional[List[Optional[int]]]:
        return self._dimensions

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, TensorShape):
            return NotImplemented
        return self._dimensions == other._dimensions

    def __repr__(self) -> str:
        return f"TensorShape({self._dimensions!r})"

    def __str__(self) -> str:
        if self._dimensions:
            # Zero is how the format spells an unknown extent.
            return "[" + ",".join(str(dim) if dim else "?" for dim in self._dimensions) + "]"
        return ""


class TensorType:

    def __init__(
        self,
        dtype: str,
        shape: Optional[Sequence[Optional[int]]] = None,
        format: Optional[str] = None,
        denotation: Optional[str] = None,
    ) -> None:
        self._dtype = dtype
        self._shape = shape if isinstance(shape, TensorShape) else TensorShape(shape)
        tokens = []
        if format:
            tokens.append(format)
        if denotation and denotation != format:
            tokens.append(denotation)
        self._denotation = " ".join(tokens)

    @property
    def dtype(self) -> str:
        return self._dtype

    @property
    def shape(self) -> TensorShape:
        return self._shape

    @property
    def denotation(self) -> str:
        return self._denotation

    def __repr__(self) -> str:
        return f"TensorType({self}, denotation={self._denotation!r})"

    def __str__(self) -> str:
        return str(self._dtype) + str(self._shape)


class Tensor:
    """A constant tensor; ``data`` is a view into the buffer it came from."""

    def __init__(
        self,
        kind: str,
        type: TensorType,
        data: Optional[TensorData] = None,
    ) -> None:
        self.name = ""
        self.kind = kind
        self._type = type
        self._data = data

    @property
    def type(self) -> TensorType:
        return self._type

    @property
    def data(self) -> Optional[TensorData]:
        return self._data

    @property
    def values(self) -> Optional[np.ndarray]:
        """Payload as a read-only numpy view, or None when it cannot be typed."""
        if self._data is None:
            return None
        np_dtype = OM_DTYPES_TO_NUMPY_DTYPES.get(self._type.dtype)
        if np_dtype is None:
            return None
        buffer = memoryview(self._data).cast("B")
        if len(buffer) % np_dtype.itemsize != 0:
            return None
        values = np.frombuffer(buffer, dtype=np_dtype)
        dimensions = self._type.shape.dimensions
        if dimensions and all(dim is not None and dim > 0 for dim in dimensions):
            if int(np.prod(dimensions)) == values.size:
                return values.reshape(dimensions)
        return values

    def __repr__(self) -> str:
        return f"Tensor({self.kind}, {self._type})"
