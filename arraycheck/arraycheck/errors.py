"""Exceptions for malformed descriptors and records for content findings."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


# ── Exceptions ──────────────────────────────────────────────────────────────


class ArrayCheckError(Exception):
    """Base exception for arraycheck configuration errors."""


class DescriptorError(ArrayCheckError, ValueError):
    """Array descriptor is malformed; the array cannot be validated."""


class UnknownDataTypeError(DescriptorError):
    """Element type identifier is not in the registry."""


class ArithmeticOverflowError(DescriptorError, OverflowError):
    """Expected array size does not fit the size type."""


# ── Findings ────────────────────────────────────────────────────────────────


class ErrorKind(str, Enum):
    ARRAY_DATA_FILE_READ_ERROR = "ARRAY_DATA_FILE_READ_ERROR"
    ARRAY_VALUE_RANGE_ERROR = "ARRAY_VALUE_RANGE_ERROR"
    ARRAY_STATISTICS_MISMATCH_ERROR = "ARRAY_STATISTICS_MISMATCH_ERROR"
    ARRAY_VALUE_OUT_OF_VALID_RANGE = "ARRAY_VALUE_OUT_OF_VALID_RANGE"


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class ValidationError:
    """One finding about an array.

    Structural findings carry no location and apply to the whole array.
    Content findings carry the flat row-major ``element`` index, its
    per-axis ``indices`` and the absolute byte ``offset`` in the file.
    """

    kind: ErrorKind
    message: str
    severity: Severity = Severity.ERROR
    element: Optional[int] = None
    offset: Optional[int] = None
    indices: Optional[tuple[int, ...]] = None

    @property
    def whole_array(self) -> bool:
        return self.element is None

    @property
    def location(self) -> str:
        if self.element is None:
            return "whole array"
        loc = f"element {self.element}"
        if self.indices is not None and len(self.indices) > 1:
            loc += f" {self.indices}"
        if self.offset is not None:
            loc += f" at byte {self.offset}"
        return loc

    def __str__(self) -> str:
        return f"{self.severity.value.upper()} {self.kind.value} [{self.location}]: {self.message}"
