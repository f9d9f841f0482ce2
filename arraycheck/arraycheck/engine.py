"""Validation engine – picks a strategy per array and runs it."""

from __future__ import annotations

import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterable, Optional

from .descriptor import ArrayDescriptor
from .errors import DescriptorError, ErrorKind, Severity, ValidationError
from .region import FileRegion, PathLike
from .validators import (
    DEFAULT_BLOCK_ELEMENTS,
    ElementScanValidator,
    SizeCheckValidator,
    Strategy,
    select_strategy,
)

logger = logging.getLogger("arraycheck")


@dataclass(frozen=True)
class ArrayResult:
    """Outcome of validating one array.

    *failure* is set (and *strategy* is ``None``) when the descriptor
    itself was unusable and no strategy ran.
    """

    name: str
    path: str
    strategy: Optional[Strategy]
    errors: tuple[ValidationError, ...] = ()
    failure: Optional[DescriptorError] = None
    elapsed: float = 0.0

    @property
    def error_count(self) -> int:
        return sum(1 for e in self.errors if e.severity is Severity.ERROR)

    @property
    def warning_count(self) -> int:
        return sum(1 for e in self.errors if e.severity is Severity.WARNING)

    @property
    def ok(self) -> bool:
        return self.failure is None and self.error_count == 0


class ValidationEngine:
    """Validate arrays against their descriptors.

    Usage::

        engine = ValidationEngine(max_workers=4)
        errors = engine.validate(descriptor, "frame.img")
        results = engine.validate_many([(d1, "a.img"), (d2, "b.img")])

    Configuration errors (unknown type, size overflow) raise from
    :meth:`validate` before any strategy runs; :meth:`validate_many`
    records them per array instead.
    """

    def __init__(
        self,
        *,
        block_elements: int = DEFAULT_BLOCK_ELEMENTS,
        max_errors: Optional[int] = None,
        max_workers: Optional[int] = None,
    ) -> None:
        self.max_workers = max_workers
        self._size_check = SizeCheckValidator()
        self._scan = ElementScanValidator(
            block_elements=block_elements, max_errors=max_errors,
        )

    def validate(self, descriptor: ArrayDescriptor, path: PathLike) -> list[ValidationError]:
        return list(self.check(descriptor, path).errors)

    def check(self, descriptor: ArrayDescriptor, path: PathLike) -> ArrayResult:
        t0 = time.perf_counter()
        expected = descriptor.expected_nbytes
        strategy = select_strategy(descriptor)
        validator = self._size_check if strategy is Strategy.SIZE_CHECK else self._scan
        logger.debug(
            "%s: %s, %s %s, %d bytes expected",
            descriptor.name, strategy.value, descriptor.data_type.name,
            "x".join(map(str, descriptor.dimensions)), expected,
        )

        try:
            region = FileRegion(path, descriptor.offset)
        except OSError as exc:
            errors = [
                ValidationError(
                    kind=ErrorKind.ARRAY_DATA_FILE_READ_ERROR,
                    message=f"{descriptor.name}: cannot open data file: {exc}",
                )
            ]
        else:
            with region:
                errors = validator.validate(descriptor, region)

        elapsed = time.perf_counter() - t0
        logger.info(
            "%s: %s, %d finding(s) in %.3fs",
            descriptor.name, strategy.value, len(errors), elapsed,
        )
        return ArrayResult(
            name=descriptor.name,
            path=os.fspath(path),
            strategy=strategy,
            errors=tuple(errors),
            elapsed=elapsed,
        )

    def validate_many(
        self, jobs: Iterable[tuple[ArrayDescriptor, PathLike]]
    ) -> list[ArrayResult]:
        """Validate independent arrays, in parallel when *max_workers* allows.

        Results come back in the order of *jobs*.
        """
        jobs = list(jobs)
        if self.max_workers == 1 or len(jobs) <= 1:
            return [self._check_captured(d, p) for d, p in jobs]
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [executor.submit(self._check_captured, d, p) for d, p in jobs]
            return [f.result() for f in futures]

    def _check_captured(self, descriptor: ArrayDescriptor, path: PathLike) -> ArrayResult:
        try:
            return self.check(descriptor, path)
        except DescriptorError as exc:
            logger.warning("%s: not validated: %s", descriptor.name, exc)
            return ArrayResult(
                name=descriptor.name, path=os.fspath(path), strategy=None, failure=exc,
            )
