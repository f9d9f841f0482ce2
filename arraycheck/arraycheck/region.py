"""Read-only byte region of a data file, starting at an array's offset."""

from __future__ import annotations

import os
from typing import Union

PathLike = Union[str, "os.PathLike[str]"]


class FileRegion:
    """Byte view on *path* starting at *offset*.

    Usage::

        with FileRegion("frame.img", offset=2880) as region:
            n = region.available()
            head = region.read(0, 16)

    Offsets passed to :meth:`read` are relative to the region start.
    """

    def __init__(self, path: PathLike, offset: int = 0) -> None:
        if offset < 0:
            raise ValueError(f"negative region offset: {offset}")
        self.path = os.fspath(path)
        self.offset = offset
        self._fd = open(self.path, "rb")  # noqa: SIM115

    def file_size(self) -> int:
        return os.fstat(self._fd.fileno()).st_size

    def available(self) -> int:
        """Bytes present from the region start to end of file (one stat)."""
        return max(0, self.file_size() - self.offset)

    def read(self, start: int, length: int) -> bytes:
        """Read up to *length* bytes at region-relative *start*.

        Returns fewer bytes only when end of file is reached.
        """
        pos = self.offset + start
        if hasattr(os, "pread"):
            chunks = []
            remaining = length
            while remaining > 0:
                data = os.pread(self._fd.fileno(), remaining, pos)
                if not data:
                    break
                chunks.append(data)
                pos += len(data)
                remaining -= len(data)
            return b"".join(chunks)
        self._fd.seek(pos)
        return self._fd.read(length)

    def close(self) -> None:
        self._fd.close()

    @property
    def closed(self) -> bool:
        return self._fd.closed

    def __enter__(self) -> FileRegion:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"FileRegion({self.path!r}, offset={self.offset})"
