"""Element encodings: widths, byte orders, ranges, and decoders."""

from __future__ import annotations

import math
import struct
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Union

import numpy as np

from .errors import ArithmeticOverflowError, UnknownDataTypeError

Number = Union[int, float]


# ── Data type identifiers ──────────────────────────────────────────────────


class DataType(str, Enum):
    SIGNED_BYTE = "SignedByte"
    UNSIGNED_BYTE = "UnsignedByte"
    SIGNED_MSB2 = "SignedMSB2"
    SIGNED_MSB4 = "SignedMSB4"
    SIGNED_MSB8 = "SignedMSB8"
    SIGNED_LSB2 = "SignedLSB2"
    SIGNED_LSB4 = "SignedLSB4"
    SIGNED_LSB8 = "SignedLSB8"
    UNSIGNED_MSB2 = "UnsignedMSB2"
    UNSIGNED_MSB4 = "UnsignedMSB4"
    UNSIGNED_MSB8 = "UnsignedMSB8"
    UNSIGNED_LSB2 = "UnsignedLSB2"
    UNSIGNED_LSB4 = "UnsignedLSB4"
    UNSIGNED_LSB8 = "UnsignedLSB8"
    IEEE754_MSB_SINGLE = "IEEE754MSBSingle"
    IEEE754_LSB_SINGLE = "IEEE754LSBSingle"
    IEEE754_MSB_DOUBLE = "IEEE754MSBDouble"
    IEEE754_LSB_DOUBLE = "IEEE754LSBDouble"


# ── Registry entries ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class DataTypeInfo:
    """Static knowledge about one element encoding.

    ``decode`` maps exactly ``width`` bytes to a Python number and never
    fails for a slice of the right length; NaN and infinities come back as
    such.  ``decode_block`` does the same for a run of whole elements and
    returns a native-endian :class:`numpy.ndarray`.
    """

    name: str
    width: int
    signed: bool
    integer: bool
    byte_order: str          # "big" or "little"
    minimum: Number
    maximum: Number
    numpy_dtype: np.dtype
    _unpack: Callable[[bytes], tuple] = field(repr=False, compare=False)

    def decode(self, raw: bytes) -> Number:
        return self._unpack(raw)[0]

    def decode_block(self, raw: bytes) -> np.ndarray:
        native = self.numpy_dtype.newbyteorder("=")
        count = len(raw) // self.width
        if count == 0:
            return np.empty(0, dtype=native)
        arr = np.frombuffer(raw, dtype=self.numpy_dtype, count=count)
        return arr.astype(native, copy=False)

    def to_native(self, value: Number):
        """*value* as a scalar of the element dtype, or None if it does not fit.

        Integers must be whole and in range.  Floats are rounded to the
        element precision; finite values that round to infinity do not fit.
        """
        native = self.numpy_dtype.newbyteorder("=").type
        if self.integer:
            if isinstance(value, float) and not value.is_integer():
                return None
            if not self.minimum <= value <= self.maximum:
                return None
            return native(int(value))
        try:
            with np.errstate(over="ignore"):
                cast = native(value)
        except OverflowError:
            return None
        if np.isinf(cast) and not math.isinf(value):
            return None
        return cast

    def representable(self, value: Number) -> bool:
        return self.to_native(value) is not None


#   struct code, numpy kind
_INT_CODES = {1: ("b", "i1"), 2: ("h", "i2"), 4: ("i", "i4"), 8: ("q", "i8")}
_FLOAT_CODES = {4: ("f", "f4"), 8: ("d", "f8")}


def _make(name: DataType, width: int, *, signed: bool, integer: bool, byte_order: str) -> DataTypeInfo:
    prefix = ">" if byte_order == "big" else "<"
    if integer:
        code, kind = _INT_CODES[width]
        if not signed:
            code, kind = code.upper(), "u" + kind[1:]
        bits = width * 8
        lo = -(1 << (bits - 1)) if signed else 0
        hi = (1 << (bits - 1)) - 1 if signed else (1 << bits) - 1
    else:
        code, kind = _FLOAT_CODES[width]
        hi = float(np.finfo(kind).max)
        lo = -hi
    return DataTypeInfo(
        name=name.value,
        width=width,
        signed=signed,
        integer=integer,
        byte_order=byte_order,
        minimum=lo,
        maximum=hi,
        numpy_dtype=np.dtype(prefix + kind),
        _unpack=struct.Struct(prefix + code).unpack,
    )


REGISTRY: dict[DataType, DataTypeInfo] = {
    DataType.SIGNED_BYTE: _make(DataType.SIGNED_BYTE, 1, signed=True, integer=True, byte_order="big"),
    DataType.UNSIGNED_BYTE: _make(DataType.UNSIGNED_BYTE, 1, signed=False, integer=True, byte_order="big"),
    DataType.SIGNED_MSB2: _make(DataType.SIGNED_MSB2, 2, signed=True, integer=True, byte_order="big"),
    DataType.SIGNED_MSB4: _make(DataType.SIGNED_MSB4, 4, signed=True, integer=True, byte_order="big"),
    DataType.SIGNED_MSB8: _make(DataType.SIGNED_MSB8, 8, signed=True, integer=True, byte_order="big"),
    DataType.SIGNED_LSB2: _make(DataType.SIGNED_LSB2, 2, signed=True, integer=True, byte_order="little"),
    DataType.SIGNED_LSB4: _make(DataType.SIGNED_LSB4, 4, signed=True, integer=True, byte_order="little"),
    DataType.SIGNED_LSB8: _make(DataType.SIGNED_LSB8, 8, signed=True, integer=True, byte_order="little"),
    DataType.UNSIGNED_MSB2: _make(DataType.UNSIGNED_MSB2, 2, signed=False, integer=True, byte_order="big"),
    DataType.UNSIGNED_MSB4: _make(DataType.UNSIGNED_MSB4, 4, signed=False, integer=True, byte_order="big"),
    DataType.UNSIGNED_MSB8: _make(DataType.UNSIGNED_MSB8, 8, signed=False, integer=True, byte_order="big"),
    DataType.UNSIGNED_LSB2: _make(DataType.UNSIGNED_LSB2, 2, signed=False, integer=True, byte_order="little"),
    DataType.UNSIGNED_LSB4: _make(DataType.UNSIGNED_LSB4, 4, signed=False, integer=True, byte_order="little"),
    DataType.UNSIGNED_LSB8: _make(DataType.UNSIGNED_LSB8, 8, signed=False, integer=True, byte_order="little"),
    DataType.IEEE754_MSB_SINGLE: _make(DataType.IEEE754_MSB_SINGLE, 4, signed=True, integer=False, byte_order="big"),
    DataType.IEEE754_LSB_SINGLE: _make(DataType.IEEE754_LSB_SINGLE, 4, signed=True, integer=False, byte_order="little"),
    DataType.IEEE754_MSB_DOUBLE: _make(DataType.IEEE754_MSB_DOUBLE, 8, signed=True, integer=False, byte_order="big"),
    DataType.IEEE754_LSB_DOUBLE: _make(DataType.IEEE754_LSB_DOUBLE, 8, signed=True, integer=False, byte_order="little"),
}


def lookup(identifier: Union[str, DataType]) -> DataTypeInfo:
    """Return the registry entry for *identifier* (PDS4 name or enum member)."""
    try:
        return REGISTRY[DataType(identifier)]
    except ValueError:
        raise UnknownDataTypeError(f"unknown data type: {identifier!r}") from None


# ── Safety limits ──────────────────────────────────────────────────────────

MAX_ARRAY_NBYTES = (1 << 63) - 1     # signed 64-bit size type


def array_nbytes(dimensions, width: int) -> int:
    """Total bytes for an array of *dimensions*, checking for overflow."""
    n = 1
    for d in dimensions:
        n *= d
        if n > MAX_ARRAY_NBYTES:
            raise ArithmeticOverflowError(f"element count overflow: {tuple(dimensions)}")
    total = n * width
    if total > MAX_ARRAY_NBYTES:
        raise ArithmeticOverflowError(
            f"array size overflow: {n} elements x {width} bytes "
            f"exceeds {MAX_ARRAY_NBYTES}"
        )
    return total
