from __future__ import annotations

from typing import Any, Dict, Optional


class OMError(Exception):
    stage = "load"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = str(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage,
            "error": type(self).__name__,
            "message": self.message,
        }


class FormatError(OMError):
    """The buffer does not carry the OM signature."""

    stage = "detect"


class ContainerDecodeError(OMError):
    stage = "container"

    def __init__(
        self,
        message: str,
        *,
        partition_type: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.partition_type = partition_type

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        if self.partition_type is not None:
            result["partition_type"] = int(self.partition_type)
        return result


class SchemaDecodeError(OMError):
    stage = "schema"


class UnknownDtypeError(OMError):
    stage = "dtype"

    def __init__(self, ordinal: int) -> None:
        super().__init__(f"Unknown dtype '{ordinal}'.")
        self.ordinal = int(ordinal)

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["ordinal"] = self.ordinal
        return result


__all__ = [
    "OMError",
    "FormatError",
    "ContainerDecodeError",
    "SchemaDecodeError",
    "UnknownDtypeError",
]
