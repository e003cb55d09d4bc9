# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""
Catalog file I/O.

Reads SOF catalogs line by line, indexes a previous output file for the
incremental update controller, and formats ephemeris sample lines.
Catalog text is handled as latin-1 so that byte offsets and column
positions stay one-to-one.
"""
import logging
import os
from collections.abc import Iterator

import numpy as np

from encke.domain.incremental import IncrementalIndex
from encke.domain.sof import SofHeader, parse_header

_log = logging.getLogger(__name__)

ENCODING = "latin-1"


def open_catalog(path: str, mode: str = "r"):
    """Open a catalog file with the catalog encoding and no newline translation."""
    return open(path, mode, encoding=ENCODING, newline="")


def read_header(path: str) -> SofHeader:
    """Read and parse the header line of a catalog.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the header is malformed or the file is empty.
    """
    with open_catalog(path) as handle:
        first = handle.readline()
    if not first:
        raise ValueError(f"Catalog {path} is empty")
    return parse_header(first)


def iter_records(handle) -> Iterator[str]:
    """Record lines (newline stripped) following the header; blank lines skipped."""
    for line in handle:
        text = line.rstrip("\r\n")
        if text.strip():
            yield text


def iter_catalog(path: str) -> Iterator[str]:
    """Record lines of a catalog file, header skipped."""
    with open_catalog(path) as handle:
        handle.readline()
        yield from iter_records(handle)


class PreviousOutput:
    """A previous run's output file, indexed for reuse.

    The file is read once to build the index; candidate lines are then
    re-read from disk by offset for verification. Use as a context manager.

    Args:
        path: Previous output file.
        header: Header of the current input catalog.
        target_jd: Target epoch of the current run.
    """

    def __init__(self, path: str, header: SofHeader, target_jd: float) -> None:
        self.path = path
        self.header = header
        self._handle = open(path, "rb")
        self.index = IncrementalIndex(header, target_jd, self._fetch)
        self.usable = self._build()

    def _build(self) -> bool:
        first = self._handle.readline().decode(ENCODING).rstrip("\r\n")
        if first != self.header.line:
            _log.info("Previous output %s has a different header; not reusing it", self.path)
            return False
        n = self.index.add_all(self._entries())
        _log.info("Indexed %d reusable records from %s", n, self.path)
        return True

    def _entries(self) -> Iterator[tuple[int, str]]:
        while True:
            offset = self._handle.tell()
            raw = self._handle.readline()
            if not raw:
                return
            yield offset, raw.decode(ENCODING).rstrip("\r\n")

    def _fetch(self, offset: int) -> str:
        self._handle.seek(offset)
        return self._handle.readline().decode(ENCODING)

    def lookup(self, line: str) -> str | None:
        if not self.usable:
            return None
        return self.index.lookup(line)

    def close(self) -> None:
        self._handle.close()

    def __enter__(self) -> "PreviousOutput":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def open_previous_output(path: str | None, header: SofHeader, target_jd: float) -> PreviousOutput | None:
    """PreviousOutput for ``path`` if it exists, else None."""
    if not path or not os.path.isfile(path):
        return None
    return PreviousOutput(path, header, target_jd)


def format_sample(designation: str, jd: float, position: np.ndarray) -> str:
    """One ephemeris sample line: designation, JD, heliocentric ecliptic x y z (AU)."""
    x, y, z = (float(v) for v in position)
    return f"{designation} {jd:.6f} {x:.12f} {y:.12f} {z:.12f}"
