#!/usr/bin/env python3
"""
arraycheck end-to-end validation: write the reference 10x10 SignedMSB2
products (valid, truncated, statistics, unsigned, special constants), run the
engine on each, then check strategy equivalence on truncation, determinism,
content findings on a corrupted frame, and batch validation from a msgpack
descriptor index. Exit 0 if all pass, 1 otherwise.
"""

from __future__ import annotations

import logging
import os
import sys
import tempfile

_REPO_PKG = os.path.join(os.path.dirname(__file__), "..", "arraycheck")
if os.path.isdir(_REPO_PKG) and _REPO_PKG not in sys.path:
    sys.path.insert(0, _REPO_PKG)

import numpy as np

from arraycheck import (
    ArrayDescriptor,
    ElementScanValidator,
    ErrorKind,
    FileRegion,
    Strategy,
    ValidationEngine,
    dump_descriptor_index,
    load_descriptor_index,
)


FRAME_SHAPE = (10, 10)

# name -> (data type, bytes on disk, special constants, statistics,
#          expected strategy, expected error count)
PRODUCTS = {
    "fastpath_valid": ("SignedMSB2", 200, None, None, Strategy.SIZE_CHECK, 0),
    "fastpath_trunc": ("SignedMSB2", 199, None, None, Strategy.SIZE_CHECK, 1),
    "fallthrough_objstats": ("SignedMSB2", 200, None, {"minimum": 0, "maximum": 0},
                             Strategy.ELEMENT_SCAN, 0),
    "fallthrough_unsigned": ("UnsignedMSB2", 200, None, None, Strategy.ELEMENT_SCAN, 0),
    "fallthrough_special": ("SignedMSB2", 200, {"missing_constant": -32768}, None,
                            Strategy.ELEMENT_SCAN, 0),
}


def write_products(base: str) -> dict[str, tuple[ArrayDescriptor, str]]:
    """Write every reference product and return name -> (descriptor, path)."""
    out = {}
    for name, (dtype, nbytes, constants, stats, _, _) in PRODUCTS.items():
        path = os.path.join(base, f"css_{name}.img")
        with open(path, "wb") as f:
            f.write(b"\x00" * nbytes)
        out[name] = (
            ArrayDescriptor(
                dimensions=FRAME_SHAPE, data_type=dtype,
                special_constants=constants, statistics=stats, name=name,
            ),
            path,
        )
    return out


def check_products(products) -> list[str]:
    failed = []
    engine = ValidationEngine()
    for name, (descriptor, path) in products.items():
        _, _, _, _, strategy, n_errors = PRODUCTS[name]
        result = engine.check(descriptor, path)
        if result.strategy is not strategy or result.error_count != n_errors:
            print(f"   FAIL {name}: {result.strategy.value}, {result.error_count} errors")
            for e in result.errors:
                print(f"        {e}")
            failed.append(name)
        else:
            print(f"   OK   {name:<22} {strategy.value:<13} {n_errors} error(s)")
    return failed


def check_truncation_equivalence(base: str) -> bool:
    """Size check and element scan must report a short file identically."""
    descriptor = ArrayDescriptor(dimensions=FRAME_SHAPE, data_type="SignedMSB2")
    for short_by in (1, 2, 57, 200):
        path = os.path.join(base, f"trunc_{short_by}.img")
        with open(path, "wb") as f:
            f.write(b"\x00" * (200 - short_by))
        fast = ValidationEngine().validate(descriptor, path)
        with FileRegion(path, descriptor.offset) as region:
            slow = ElementScanValidator().validate(descriptor, region)
        if len(fast) != 1 or fast != slow:
            print(f"   FAIL short by {short_by}: {fast} vs {slow}")
            return False
    return True


def check_corrupted_frame(base: str) -> bool:
    """A frame with out-of-statistics pixels must be flagged at their locations."""
    data = np.zeros(FRAME_SHAPE, dtype=">i2")
    data[3, 7] = 4096
    data[9, 9] = -5
    path = os.path.join(base, "corrupt.img")
    with open(path, "wb") as f:
        f.write(data.tobytes())
    descriptor = ArrayDescriptor(
        dimensions=FRAME_SHAPE, data_type="SignedMSB2",
        statistics={"minimum": 0, "maximum": 4095},
    )
    errors = ValidationEngine().validate(descriptor, path)
    got = [(e.kind, e.indices) for e in errors]
    want = [
        (ErrorKind.ARRAY_STATISTICS_MISMATCH_ERROR, (3, 7)),
        (ErrorKind.ARRAY_STATISTICS_MISMATCH_ERROR, (9, 9)),
    ]
    if got != want:
        print(f"   FAIL got {got}")
        return False
    return True


def check_determinism(products) -> bool:
    engine = ValidationEngine()
    for name, (descriptor, path) in products.items():
        if engine.validate(descriptor, path) != engine.validate(descriptor, path):
            print(f"   FAIL {name}: results differ between runs")
            return False
    return True


def check_index_batch(products) -> bool:
    """Round-trip descriptors through a msgpack index and validate in parallel."""
    names = list(products)
    index = dump_descriptor_index(products[n][0] for n in names)
    descriptors = load_descriptor_index(index)
    jobs = [(d, products[d.name][1]) for d in descriptors]
    results = ValidationEngine(max_workers=4).validate_many(jobs)
    total = sum(r.error_count for r in results)
    if [r.name for r in results] != names or total != 1:
        print(f"   FAIL batch: {[(r.name, r.error_count) for r in results]}")
        return False
    return True


def main() -> int:
    logging.basicConfig(level=logging.WARNING, format="%(message)s")
    failed = []
    print("arraycheck validation")
    print("=" * 56)

    with tempfile.TemporaryDirectory() as base:
        print("\n1. Reference products (strategy + error count)")
        products = write_products(base)
        failed.extend(check_products(products))

        print("\n2. Truncation reported identically by both strategies")
        if not check_truncation_equivalence(base):
            failed.append("truncation_equivalence")
        else:
            print("   OK")

        print("\n3. Corrupted frame flagged at the bad pixels")
        if not check_corrupted_frame(base):
            failed.append("corrupted_frame")
        else:
            print("   OK")

        print("\n4. Determinism (same input -> same findings)")
        if not check_determinism(products):
            failed.append("determinism")
        else:
            print("   OK")

        print("\n5. Batch validation from a msgpack descriptor index")
        if not check_index_batch(products):
            failed.append("index_batch")
        else:
            print("   OK")

    print("\n" + "=" * 56)
    if failed:
        print("RESULT: FAILED –", ", ".join(failed))
        return 1
    print("RESULT: All checks passed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
