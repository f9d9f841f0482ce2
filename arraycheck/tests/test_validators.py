"""Strategy selection, size check, and element scan tests."""

from __future__ import annotations

import itertools

import numpy as np
import pytest

from arraycheck.descriptor import ArrayDescriptor
from arraycheck.errors import ErrorKind, Severity
from arraycheck.region import FileRegion
from arraycheck.validators import (
    ElementScanValidator,
    SizeCheckValidator,
    Strategy,
    is_eligible,
    select_strategy,
)


# ── Helpers ─────────────────────────────────────────────────────────────────


def _write(path, data: bytes) -> str:
    with open(path, "wb") as f:
        f.write(data)
    return str(path)


def _scan(descriptor, path, **kwargs):
    with FileRegion(path, descriptor.offset) as region:
        return ElementScanValidator(**kwargs).validate(descriptor, region)


def _size_check(descriptor, path):
    with FileRegion(path, descriptor.offset) as region:
        return SizeCheckValidator().validate(descriptor, region)


def _kinds(errors):
    return [e.kind for e in errors]


# ── Classifier ──────────────────────────────────────────────────────────────


_TYPES = {
    "signed": "SignedMSB2",
    "unsigned": "UnsignedMSB2",
    "float": "IEEE754MSBSingle",
}


@pytest.mark.parametrize(
    "kind, with_constants, with_stats",
    list(itertools.product(_TYPES, [False, True], [False, True])),
)
def test_classifier_is_total(kind, with_constants, with_stats):
    d = ArrayDescriptor(
        dimensions=(10, 10),
        data_type=_TYPES[kind],
        special_constants={"missing_constant": 0} if with_constants else None,
        statistics={"minimum": 0, "maximum": 0} if with_stats else None,
    )
    expected = kind == "signed" and not with_constants and not with_stats
    assert is_eligible(d) is expected
    assert is_eligible(d) is is_eligible(d)
    assert select_strategy(d) is (Strategy.SIZE_CHECK if expected else Strategy.ELEMENT_SCAN)


@pytest.mark.parametrize("name", ["SignedByte", "SignedLSB2", "SignedMSB4", "SignedLSB8"])
def test_every_signed_integer_width_is_eligible(name):
    assert is_eligible(ArrayDescriptor(dimensions=(3,), data_type=name))


# ── Size check ──────────────────────────────────────────────────────────────


class TestSizeCheck:
    def _descriptor(self, offset=0):
        return ArrayDescriptor(dimensions=(10, 10), data_type="SignedMSB2", offset=offset)

    def test_exact_size(self, tmp_path):
        path = _write(tmp_path / "a.img", b"\x00" * 200)
        assert _size_check(self._descriptor(), path) == []

    def test_one_byte_short(self, tmp_path):
        path = _write(tmp_path / "a.img", b"\x00" * 199)
        errors = _size_check(self._descriptor(), path)
        assert len(errors) == 1
        err = errors[0]
        assert err.kind is ErrorKind.ARRAY_DATA_FILE_READ_ERROR
        assert err.severity is Severity.ERROR
        assert err.whole_array
        assert err.location == "whole array"
        assert "smaller than expected array" in err.message
        assert "short by 1 bytes" in err.message
        assert "first incomplete element is 99" in err.message

    def test_surplus_is_tolerated(self, tmp_path):
        path = _write(tmp_path / "a.img", b"\x00" * 256)
        assert _size_check(self._descriptor(), path) == []

    def test_offset_is_honoured(self, tmp_path):
        path = _write(tmp_path / "a.img", b"H" * 16 + b"\x00" * 200)
        assert _size_check(self._descriptor(offset=16), path) == []
        errors = _size_check(self._descriptor(offset=17), path)
        assert "short by 1 bytes" in errors[0].message

    def test_offset_past_end_of_file(self, tmp_path):
        path = _write(tmp_path / "a.img", b"\x00" * 10)
        errors = _size_check(self._descriptor(offset=50), path)
        assert len(errors) == 1
        assert "found 0" in errors[0].message

    def test_does_not_read_content(self, tmp_path):
        """Garbage bytes of the right length pass: only the size is checked."""
        path = _write(tmp_path / "a.img", bytes(range(200)))
        assert _size_check(self._descriptor(), path) == []


# ── Element scan ────────────────────────────────────────────────────────────


class TestElementScan:
    def test_zeros_pass(self, tmp_path):
        path = _write(tmp_path / "a.img", np.zeros((10, 10), dtype=">u2").tobytes())
        d = ArrayDescriptor(dimensions=(10, 10), data_type="UnsignedMSB2")
        assert _scan(d, path) == []

    def test_statistics_mismatch_locations(self, tmp_path):
        data = np.zeros((3, 4), dtype="<i4")
        data[1, 2] = 11
        data[2, 0] = -1
        path = _write(tmp_path / "a.img", b"\xaa" * 8 + data.tobytes())
        d = ArrayDescriptor(
            dimensions=(3, 4), data_type="SignedLSB4", offset=8,
            statistics={"minimum": 0, "maximum": 10},
        )
        errors = _scan(d, path)
        assert _kinds(errors) == [ErrorKind.ARRAY_STATISTICS_MISMATCH_ERROR] * 2
        first, second = errors
        assert first.element == 6
        assert first.indices == (1, 2)
        assert first.offset == 8 + 6 * 4
        assert "value 11" in first.message
        assert first.location == "element 6 (1, 2) at byte 32"
        assert second.element == 8
        assert second.indices == (2, 0)
        assert "value -1" in second.message

    def test_special_constant_skips_checks(self, tmp_path):
        data = np.array([5, -32768, 7, -32768], dtype=">i2")
        path = _write(tmp_path / "a.img", data.tobytes())
        d = ArrayDescriptor(
            dimensions=(4,), data_type="SignedMSB2",
            special_constants={"missing_constant": -32768},
            statistics={"minimum": 0, "maximum": 10},
        )
        assert _scan(d, path) == []

    def test_unrepresentable_constant_never_matches(self, tmp_path):
        data = np.array([0, 255], dtype="u1")
        path = _write(tmp_path / "a.img", data.tobytes())
        d = ArrayDescriptor(
            dimensions=(2,), data_type="UnsignedByte",
            special_constants={"missing_constant": -1},
            statistics={"minimum": 0, "maximum": 100},
        )
        errors = _scan(d, path)
        assert [e.element for e in errors] == [1]

    def test_fractional_statistics_on_integers(self, tmp_path):
        data = np.array([0, 1, 2, 3], dtype=">i8")
        path = _write(tmp_path / "a.img", data.tobytes())
        d = ArrayDescriptor(
            dimensions=(4,), data_type="SignedMSB8",
            statistics={"minimum": 0.5, "maximum": 2.5},
        )
        assert [e.element for e in _scan(d, path)] == [0, 3]

    def test_uint64_extremes_compare_exactly(self, tmp_path):
        data = np.array([2**64 - 1, 2**64 - 2], dtype=">u8")
        path = _write(tmp_path / "a.img", data.tobytes())
        d = ArrayDescriptor(
            dimensions=(2,), data_type="UnsignedMSB8",
            statistics={"minimum": 0, "maximum": 2**64 - 2},
        )
        errors = _scan(d, path)
        assert [e.element for e in errors] == [0]
        assert str(2**64 - 1) in errors[0].message

    def test_nan_and_inf_are_range_errors(self, tmp_path):
        data = np.array([1.0, np.nan, np.inf, -np.inf, -2.0], dtype=">f4")
        path = _write(tmp_path / "a.img", data.tobytes())
        d = ArrayDescriptor(dimensions=(5,), data_type="IEEE754MSBSingle")
        errors = _scan(d, path)
        assert _kinds(errors) == [ErrorKind.ARRAY_VALUE_RANGE_ERROR] * 3
        assert [e.element for e in errors] == [1, 2, 3]
        assert "nan" in errors[0].message

    def test_nan_is_outside_statistics_too(self, tmp_path):
        data = np.array([np.nan, 0.5], dtype="<f8")
        path = _write(tmp_path / "a.img", data.tobytes())
        d = ArrayDescriptor(
            dimensions=(2,), data_type="IEEE754LSBDouble",
            statistics={"minimum": 0.0, "maximum": 1.0},
        )
        errors = _scan(d, path)
        assert _kinds(errors) == [ErrorKind.ARRAY_VALUE_RANGE_ERROR]

    def test_float_sentinel_matches_after_cast(self, tmp_path):
        data = np.array([1.0, np.float32(-3.4028235e38), 5.0], dtype=">f4")
        path = _write(tmp_path / "a.img", data.tobytes())
        stats = {"minimum": 0.0, "maximum": 10.0}

        plain = ArrayDescriptor(dimensions=(3,), data_type="IEEE754MSBSingle", statistics=stats)
        errors = _scan(plain, path)
        assert _kinds(errors) == [ErrorKind.ARRAY_STATISTICS_MISMATCH_ERROR]
        assert errors[0].element == 1

        flagged = ArrayDescriptor(
            dimensions=(3,), data_type="IEEE754MSBSingle", statistics=stats,
            special_constants={"missing_constant": -3.4028235e38},
        )
        assert _scan(flagged, path) == []

    def test_float32_bounds_compare_at_single_precision(self, tmp_path):
        data = np.array([0.1, 0.2, 0.3, 0.31], dtype=">f4")
        path = _write(tmp_path / "a.img", data.tobytes())
        d = ArrayDescriptor(
            dimensions=(4,), data_type="IEEE754MSBSingle",
            statistics={"minimum": 0.1, "maximum": 0.3},
            special_constants={"valid_minimum": 0.1, "valid_maximum": 0.3},
        )
        errors = _scan(d, path)
        assert _kinds(errors) == [ErrorKind.ARRAY_STATISTICS_MISMATCH_ERROR]
        assert errors[0].element == 3

    def test_constant_beyond_single_precision_never_matches(self, tmp_path):
        data = np.array([1.0, np.inf], dtype="<f4")
        path = _write(tmp_path / "a.img", data.tobytes())
        d = ArrayDescriptor(
            dimensions=(2,), data_type="IEEE754LSBSingle",
            special_constants={"missing_constant": 1e300, "error_constant": 10**40},
        )
        errors = _scan(d, path)
        assert _kinds(errors) == [ErrorKind.ARRAY_VALUE_RANGE_ERROR]
        assert errors[0].element == 1

    def test_valid_range_warnings(self, tmp_path):
        data = np.array([0, 1, 50, 99, 4095], dtype=">u2")
        path = _write(tmp_path / "a.img", data.tobytes())
        d = ArrayDescriptor(
            dimensions=(5,), data_type="UnsignedMSB2",
            special_constants={
                "saturated_constant": 4095, "valid_minimum": 1, "valid_maximum": 60,
            },
        )
        errors = _scan(d, path)
        assert [e.element for e in errors] == [0, 3]
        assert {e.kind for e in errors} == {ErrorKind.ARRAY_VALUE_OUT_OF_VALID_RANGE}
        assert {e.severity for e in errors} == {Severity.WARNING}
        assert "[1, 60]" in errors[0].message

    def test_statistics_takes_precedence_over_valid_range(self, tmp_path):
        data = np.array([200], dtype="u1")
        path = _write(tmp_path / "a.img", data.tobytes())
        d = ArrayDescriptor(
            dimensions=(1,), data_type="UnsignedByte",
            special_constants={"valid_maximum": 100},
            statistics={"minimum": 0, "maximum": 100},
        )
        assert _kinds(_scan(d, path)) == [ErrorKind.ARRAY_STATISTICS_MISMATCH_ERROR]

    def test_truncation_keeps_earlier_findings(self, tmp_path):
        data = np.array([1, 99, 2, 3], dtype=">i2").tobytes()[:-1]
        path = _write(tmp_path / "a.img", data)
        d = ArrayDescriptor(
            dimensions=(4,), data_type="SignedMSB2",
            statistics={"minimum": 0, "maximum": 10},
        )
        errors = _scan(d, path)
        assert _kinds(errors) == [
            ErrorKind.ARRAY_STATISTICS_MISMATCH_ERROR,
            ErrorKind.ARRAY_DATA_FILE_READ_ERROR,
        ]
        assert errors[0].element == 1
        assert errors[1].whole_array
        assert "first incomplete element is 3" in errors[1].message

    def test_block_size_does_not_change_findings(self, tmp_path):
        rng = np.random.default_rng(1234)
        data = rng.integers(-100, 100, size=(13, 17)).astype("<i2")
        path = _write(tmp_path / "a.img", data.tobytes())
        d = ArrayDescriptor(
            dimensions=(13, 17), data_type="SignedLSB2",
            statistics={"minimum": -50, "maximum": 50},
        )
        expected = [(int(i), int(j)) for i, j in zip(*np.nonzero(np.abs(data) > 50))]
        for block in (1, 7, 64, 1 << 16):
            errors = _scan(d, path, block_elements=block)
            assert [e.indices for e in errors] == expected

    def test_max_errors_stops_scan(self, tmp_path):
        path = _write(tmp_path / "a.img", np.full(100, 9, dtype=">i2").tobytes()[:-1])
        d = ArrayDescriptor(
            dimensions=(100,), data_type="SignedMSB2",
            statistics={"minimum": 0, "maximum": 1},
        )
        errors = _scan(d, path, max_errors=5, block_elements=8)
        assert len(errors) == 5
        assert [e.element for e in errors] == [0, 1, 2, 3, 4]

    def test_invalid_options(self):
        with pytest.raises(ValueError, match="block_elements"):
            ElementScanValidator(block_elements=0)
        with pytest.raises(ValueError, match="max_errors"):
            ElementScanValidator(max_errors=0)
