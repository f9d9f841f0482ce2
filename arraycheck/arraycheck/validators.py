"""Array content validation strategies.

Two strategies share one contract, ``validate(descriptor, region) -> list``:

* :class:`SizeCheckValidator` compares the file region's size with the
  expected array size.  O(1), used when :func:`is_eligible` says no declared
  constraint depends on element values.
* :class:`ElementScanValidator` decodes every element and checks it against
  the type range, special constants, statistics and valid range.

Both report a short file with the same record (see :func:`short_file_error`).
"""

from __future__ import annotations

import logging
import math
from enum import Enum
from typing import Optional

import numpy as np

from .datatypes import DataTypeInfo, Number
from .descriptor import ArrayDescriptor
from .errors import ErrorKind, Severity, ValidationError
from .region import FileRegion

logger = logging.getLogger("arraycheck")

DEFAULT_BLOCK_ELEMENTS = 1 << 16


class Strategy(str, Enum):
    SIZE_CHECK = "size-check"
    ELEMENT_SCAN = "element-scan"


# ── Classifier ──────────────────────────────────────────────────────────────


def is_eligible(descriptor: ArrayDescriptor) -> bool:
    """True iff a file-size comparison is enough to validate *descriptor*.

    Only signed integer arrays with no special constants and no declared
    statistics qualify; any value-sensitive declaration needs a full scan.
    """
    dt = descriptor.data_type
    return (
        dt.integer
        and dt.signed
        and not descriptor.special_constants
        and descriptor.statistics is None
    )


def select_strategy(descriptor: ArrayDescriptor) -> Strategy:
    return Strategy.SIZE_CHECK if is_eligible(descriptor) else Strategy.ELEMENT_SCAN


# ── Shared records ──────────────────────────────────────────────────────────


def short_file_error(descriptor: ArrayDescriptor, expected: int, actual: int) -> ValidationError:
    """Whole-array read error for a data region of *actual* < *expected* bytes."""
    first_incomplete = actual // descriptor.element_width
    return ValidationError(
        kind=ErrorKind.ARRAY_DATA_FILE_READ_ERROR,
        message=(
            f"{descriptor.name}: data file is smaller than expected array: "
            f"expected {expected} bytes from offset {descriptor.offset}, "
            f"found {actual} (short by {expected - actual} bytes); "
            f"first incomplete element is {first_incomplete}"
        ),
    )


# ── Fast path ───────────────────────────────────────────────────────────────


class SizeCheckValidator:
    """Validate by comparing the region size with the expected array size."""

    strategy = Strategy.SIZE_CHECK

    def validate(self, descriptor: ArrayDescriptor, region: FileRegion) -> list[ValidationError]:
        expected = descriptor.expected_nbytes
        actual = region.available()
        if actual < expected:
            return [short_file_error(descriptor, expected, actual)]
        if actual > expected:
            # Trailing bytes belong to whatever follows the array.
            logger.debug(
                "%s: %d bytes past the end of the array in %s",
                descriptor.name, actual - expected, region.path,
            )
        return []


# ── Element scan ────────────────────────────────────────────────────────────


def _int_interval(dt: DataTypeInfo, lo: Optional[Number], hi: Optional[Number]):
    """Integers in [lo, hi] that the type can hold, or None if there are none."""
    if (lo is not None and lo > dt.maximum) or (hi is not None and hi < dt.minimum):
        return None
    lo_i = dt.minimum if lo is None or lo < dt.minimum else math.ceil(lo)
    hi_i = dt.maximum if hi is None or hi > dt.maximum else math.floor(hi)
    if lo_i > hi_i:
        return None
    return lo_i, hi_i


class _Bounds:
    """Closed interval test, exact in the element's own domain.

    Both kinds compare in the element dtype.  Integer bounds are rounded
    inward to whole values; float bounds are rounded to the element
    precision, the same way the label value would be stored.  NaN is
    outside every interval.
    """

    def __init__(self, dt: DataTypeInfo, lo: Optional[Number], hi: Optional[Number]) -> None:
        self.lo = lo
        self.hi = hi
        native = dt.numpy_dtype.newbyteorder("=").type
        if dt.integer:
            interval = _int_interval(dt, lo, hi)
            self._empty = interval is None
            if interval is not None:
                self._lo, self._hi = native(interval[0]), native(interval[1])
        else:
            self._empty = False
            self._lo = _float_bound(native, lo, -math.inf)
            self._hi = _float_bound(native, hi, math.inf)

    def outside(self, values: np.ndarray) -> np.ndarray:
        if self._empty:
            return np.ones(values.shape, dtype=bool)
        return ~((values >= self._lo) & (values <= self._hi))


def _float_bound(native, value: Optional[Number], open_end: float):
    if value is None:
        return native(open_end)
    # a bound beyond the type's range saturates to infinity
    with np.errstate(over="ignore"):
        return native(value)


def _native_constants(dt: DataTypeInfo, constants) -> list:
    """Special constants as scalars of the element dtype.

    Constants the type cannot hold are dropped; no element can equal them.
    """
    out = []
    for value in constants:
        cast = dt.to_native(value)
        if cast is not None:
            out.append(cast)
    return out


def _unravel(flat: int, dims: tuple[int, ...]) -> tuple[int, ...]:
    out = []
    for d in reversed(dims):
        flat, rem = divmod(flat, d)
        out.append(rem)
    return tuple(reversed(out))


class ElementScanValidator:
    """Decode and check every element in row-major order.

    Reads *block_elements* elements at a time.  Content findings
    accumulate; a short file ends the scan with one read error.  When
    *max_errors* content findings have been collected the scan stops early.
    """

    strategy = Strategy.ELEMENT_SCAN

    def __init__(
        self,
        *,
        block_elements: int = DEFAULT_BLOCK_ELEMENTS,
        max_errors: Optional[int] = None,
    ) -> None:
        if block_elements < 1:
            raise ValueError(f"block_elements must be >= 1, got {block_elements}")
        if max_errors is not None and max_errors < 1:
            raise ValueError(f"max_errors must be >= 1, got {max_errors}")
        self.block_elements = block_elements
        self.max_errors = max_errors

    def validate(self, descriptor: ArrayDescriptor, region: FileRegion) -> list[ValidationError]:
        dt = descriptor.data_type
        width = dt.width
        expected = descriptor.expected_nbytes
        count = descriptor.element_count

        sentinels = _native_constants(dt, descriptor.special_constants.values)
        type_range = _Bounds(dt, dt.minimum, dt.maximum)
        stats = descriptor.statistics
        stats_range = _Bounds(dt, stats.minimum, stats.maximum) if stats is not None else None
        vmin = descriptor.special_constants.valid_minimum
        vmax = descriptor.special_constants.valid_maximum
        valid_range = _Bounds(dt, vmin, vmax) if vmin is not None or vmax is not None else None

        errors: list[ValidationError] = []
        start = 0
        while start < count:
            n = min(self.block_elements, count - start)
            want = n * width
            raw = region.read(start * width, want)
            whole = len(raw) // width
            if whole:
                values = dt.decode_block(raw[: whole * width])
                keep_going = self._check_block(
                    descriptor, values, start, errors,
                    sentinels, type_range, stats_range, valid_range,
                )
                if not keep_going:
                    return errors
            if len(raw) < want:
                errors.append(short_file_error(descriptor, expected, start * width + len(raw)))
                return errors
            start += n
        return errors

    def _check_block(
        self,
        descriptor: ArrayDescriptor,
        values: np.ndarray,
        start: int,
        errors: list[ValidationError],
        sentinels: list,
        type_range: _Bounds,
        stats_range: Optional[_Bounds],
        valid_range: Optional[_Bounds],
    ) -> bool:
        """Append findings for one decoded block; False once the cap is hit."""
        candidate = np.ones(values.shape, dtype=bool)
        for s in sentinels:
            candidate &= values != s

        bad_type = candidate & type_range.outside(values)
        candidate &= ~bad_type
        bad_stats = np.zeros(values.shape, dtype=bool)
        if stats_range is not None:
            bad_stats = candidate & stats_range.outside(values)
            candidate &= ~bad_stats
        bad_valid = np.zeros(values.shape, dtype=bool)
        if valid_range is not None:
            bad_valid = candidate & valid_range.outside(values)

        dt = descriptor.data_type
        for i in np.flatnonzero(bad_type | bad_stats | bad_valid):
            i = int(i)
            value = values[i].item()
            element = start + i
            if bad_type[i]:
                kind, severity = ErrorKind.ARRAY_VALUE_RANGE_ERROR, Severity.ERROR
                message = (
                    f"value {value} is outside the representable range "
                    f"[{dt.minimum}, {dt.maximum}] of {dt.name}"
                )
            elif bad_stats[i]:
                kind, severity = ErrorKind.ARRAY_STATISTICS_MISMATCH_ERROR, Severity.ERROR
                message = (
                    f"value {value} is outside the declared statistics range "
                    f"[{stats_range.lo}, {stats_range.hi}]"
                )
            else:
                kind, severity = ErrorKind.ARRAY_VALUE_OUT_OF_VALID_RANGE, Severity.WARNING
                lo = dt.minimum if valid_range.lo is None else valid_range.lo
                hi = dt.maximum if valid_range.hi is None else valid_range.hi
                message = f"value {value} is outside the valid range [{lo}, {hi}]"
            errors.append(
                ValidationError(
                    kind=kind,
                    message=f"{descriptor.name}: {message}",
                    severity=severity,
                    element=element,
                    offset=descriptor.offset + element * dt.width,
                    indices=_unravel(element, descriptor.dimensions),
                )
            )
            if self.max_errors is not None and len(errors) >= self.max_errors:
                logger.warning(
                    "%s: stopping scan after %d findings (max_errors)",
                    descriptor.name, len(errors),
                )
                return False
        return True
