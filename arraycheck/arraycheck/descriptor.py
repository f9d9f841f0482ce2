"""Array descriptors – the declared shape, encoding and constraints of one array.

A descriptor is built once per validation run from label data that the
caller has already parsed.  It can also be exchanged as a msgpack
"descriptor index"::

    {"arrays": [
        {"name": "image", "data_type": "SignedMSB2", "dimensions": [10, 10],
         "offset": 0, "special_constants": {"missing_constant": -32768},
         "statistics": {"minimum": 0, "maximum": 4095}},
    ]}
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

import msgpack

from .datatypes import DataTypeInfo, Number, array_nbytes, lookup
from .errors import DescriptorError


# ── Special constants ───────────────────────────────────────────────────────

SPECIAL_CONSTANT_NAMES = (
    "saturated_constant",
    "missing_constant",
    "error_constant",
    "invalid_constant",
    "unknown_constant",
    "not_applicable_constant",
    "high_instrument_saturation",
    "high_representation_saturation",
    "low_instrument_saturation",
    "low_representation_saturation",
    "valid_minimum",
    "valid_maximum",
)


def _number(value: Any, what: str) -> Number:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DescriptorError(f"{what} must be a number, got {value!r}")
    try:
        float(value)
    except OverflowError:
        raise DescriptorError(f"{what} is too large for a float: {value}") from None
    return value


@dataclass(frozen=True)
class SpecialConstants:
    """Declared sentinel values, keyed by their PDS4 name."""

    items: tuple[tuple[str, Number], ...] = ()

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for name, value in self.items:
            if name not in SPECIAL_CONSTANT_NAMES:
                raise DescriptorError(f"unknown special constant {name!r}")
            if name in seen:
                raise DescriptorError(f"duplicate special constant {name!r}")
            seen.add(name)
            _number(value, name)
            if name in ("valid_minimum", "valid_maximum") and math.isnan(value):
                raise DescriptorError(f"{name} must not be NaN")

    @classmethod
    def from_mapping(cls, mapping: Optional[Mapping[str, Number]]) -> SpecialConstants:
        if not mapping:
            return cls()
        return cls(tuple((str(k), v) for k, v in mapping.items()))

    def __len__(self) -> int:
        return len(self.items)

    def get(self, name: str) -> Optional[Number]:
        for key, value in self.items:
            if key == name:
                return value
        return None

    @property
    def values(self) -> tuple[Number, ...]:
        return tuple(v for _, v in self.items)

    @property
    def valid_minimum(self) -> Optional[Number]:
        return self.get("valid_minimum")

    @property
    def valid_maximum(self) -> Optional[Number]:
        return self.get("valid_maximum")

    def as_dict(self) -> dict[str, Number]:
        return dict(self.items)


# ── Statistics ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Statistics:
    """Declared value range of the data actually present.

    Only ``minimum`` and ``maximum`` are verified; the remaining fields are
    carried through for the caller.
    """

    minimum: Number
    maximum: Number
    mean: Optional[float] = None
    standard_deviation: Optional[float] = None
    median: Optional[float] = None

    def __post_init__(self) -> None:
        lo = _number(self.minimum, "statistics minimum")
        hi = _number(self.maximum, "statistics maximum")
        if math.isnan(lo) or math.isnan(hi):
            raise DescriptorError("statistics bounds must not be NaN")
        if lo > hi:
            raise DescriptorError(f"statistics minimum {lo} > maximum {hi}")

    @classmethod
    def from_mapping(cls, mapping: Optional[Mapping[str, Any]]) -> Optional[Statistics]:
        if mapping is None:
            return None
        try:
            return cls(
                minimum=mapping["minimum"],
                maximum=mapping["maximum"],
                mean=mapping.get("mean"),
                standard_deviation=mapping.get("standard_deviation"),
                median=mapping.get("median"),
            )
        except KeyError as exc:
            raise DescriptorError(f"statistics missing {exc.args[0]!r}") from None

    def as_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"minimum": self.minimum, "maximum": self.maximum}
        for key in ("mean", "standard_deviation", "median"):
            value = getattr(self, key)
            if value is not None:
                out[key] = value
        return out


# ── ArrayDescriptor ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ArrayDescriptor:
    """Declared metadata of one array in a data file.

    *data_type* may be given as a PDS4 type name or :class:`DataType`; it
    is resolved against the registry here, so an unknown type fails at
    construction with :class:`UnknownDataTypeError`.
    """

    dimensions: tuple[int, ...]
    data_type: DataTypeInfo
    offset: int = 0
    special_constants: SpecialConstants = field(default_factory=SpecialConstants)
    statistics: Optional[Statistics] = None
    name: str = "array"

    def __post_init__(self) -> None:
        if not isinstance(self.data_type, DataTypeInfo):
            object.__setattr__(self, "data_type", lookup(self.data_type))
        if self.special_constants is None or isinstance(self.special_constants, Mapping):
            object.__setattr__(
                self, "special_constants",
                SpecialConstants.from_mapping(self.special_constants),
            )
        if isinstance(self.statistics, Mapping):
            object.__setattr__(self, "statistics", Statistics.from_mapping(self.statistics))

        dims = tuple(self.dimensions)
        if not dims:
            raise DescriptorError(f"{self.name}: at least one dimension is required")
        for d in dims:
            if isinstance(d, bool) or not isinstance(d, int) or d < 1:
                raise DescriptorError(f"{self.name}: invalid dimension {d!r} in {dims}")
        object.__setattr__(self, "dimensions", dims)

        if isinstance(self.offset, bool) or not isinstance(self.offset, int) or self.offset < 0:
            raise DescriptorError(f"{self.name}: invalid offset {self.offset!r}")

    # ── Derived sizes ────────────────────────────────────────────────────

    @property
    def element_count(self) -> int:
        return math.prod(self.dimensions)

    @property
    def element_width(self) -> int:
        return self.data_type.width

    @property
    def expected_nbytes(self) -> int:
        """Exact byte length of the data region; raises on overflow."""
        return array_nbytes(self.dimensions, self.data_type.width)

    # ── Mapping form ─────────────────────────────────────────────────────

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> ArrayDescriptor:
        try:
            data_type = mapping["data_type"]
            dimensions = mapping["dimensions"]
        except KeyError as exc:
            raise DescriptorError(f"descriptor missing {exc.args[0]!r}") from None
        return cls(
            dimensions=tuple(dimensions),
            data_type=data_type,
            offset=mapping.get("offset", 0),
            special_constants=SpecialConstants.from_mapping(mapping.get("special_constants")),
            statistics=Statistics.from_mapping(mapping.get("statistics")),
            name=mapping.get("name", "array"),
        )

    def to_mapping(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "name": self.name,
            "data_type": self.data_type.name,
            "dimensions": list(self.dimensions),
            "offset": self.offset,
        }
        if self.special_constants:
            out["special_constants"] = self.special_constants.as_dict()
        if self.statistics is not None:
            out["statistics"] = self.statistics.as_dict()
        return out


# ── Descriptor index (msgpack) ──────────────────────────────────────────────


def load_descriptor_index(data: bytes) -> list[ArrayDescriptor]:
    """Decode a msgpack descriptor index into descriptors."""
    try:
        doc = msgpack.unpackb(data, raw=False)
    except ValueError as exc:
        raise DescriptorError(f"invalid descriptor index: {exc}") from exc
    if not isinstance(doc, dict) or not isinstance(doc.get("arrays"), list):
        raise DescriptorError("descriptor index must be a map with an 'arrays' list")
    out = []
    for i, entry in enumerate(doc["arrays"]):
        if not isinstance(entry, Mapping):
            raise DescriptorError(f"descriptor index entry {i} must be a map, got {entry!r}")
        out.append(ArrayDescriptor.from_mapping(entry))
    return out


def dump_descriptor_index(descriptors: Iterable[ArrayDescriptor]) -> bytes:
    return msgpack.packb(
        {"arrays": [d.to_mapping() for d in descriptors]}, use_bin_type=True
    )


