# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""
Incremental update controller.

When a catalog is re-propagated to the same target epoch, most records
have not changed since the previous run. A record is identified by its
identity and quality fields (designation, fit RMS, observation count,
last observation, H, G): a refit orbit changes at least one of them. The
previous output is indexed by a rolling hash of those fields, and a hash
hit is reused only after the candidate line is re-read and its identity
columns compared byte for byte with the current record, and its epoch
column confirmed to be the current target epoch.
"""
from collections.abc import Callable, Iterable

from encke.domain.sof import SofHeader, epoch_column_text

IDENTITY_FIELDS: tuple[str, ...] = ("Name", "rms", "n_o", "Tlast", "H", "G")
HASH_MULTIPLIER = 2141592701
_HASH_MASK = (1 << 64) - 1


def identity_text(header: SofHeader, line: str) -> str:
    """Concatenated identity columns of a record."""
    return "".join(header.text(line, name) for name in IDENTITY_FIELDS)


def record_hash(header: SofHeader, line: str) -> int:
    """64-bit rolling hash over the identity columns of a record.

    Equal identity columns always give equal hashes; unequal ones may
    collide, which lookups guard against by re-verifying.
    """
    rval = 0
    for ch in identity_text(header, line).encode("latin-1", errors="replace"):
        rval = (rval * HASH_MULTIPLIER + ch) & _HASH_MASK
    return rval


class IncrementalIndex:
    """Previous-output lookup keyed by identity hash.

    Args:
        header: Header shared by the current input and previous output.
        target_jd: Target epoch of the current run; only previous lines at
            this epoch are reusable. Must be exactly representable in
            the header's Te column.
        fetch: Returns the previous-output line stored at an offset.

    Raises:
        ValueError: If ``target_jd`` cannot be written exactly as Te.
    """

    def __init__(
        self,
        header: SofHeader,
        target_jd: float,
        fetch: Callable[[int], str],
    ) -> None:
        self.header = header
        self.fetch = fetch
        self.epoch_text = epoch_column_text(header, target_jd)
        self._buckets: dict[int, list[int]] = {}

    def __len__(self) -> int:
        return sum(len(offsets) for offsets in self._buckets.values())

    def _at_target(self, line: str) -> bool:
        return self.header.text(line, "Te") == self.epoch_text

    def add(self, offset: int, line: str) -> bool:
        """Index one previous-output line; lines at other epochs are skipped."""
        if not self._at_target(line):
            return False
        self._buckets.setdefault(record_hash(self.header, line), []).append(offset)
        return True

    def add_all(self, entries: Iterable[tuple[int, str]]) -> int:
        return sum(1 for offset, line in entries if self.add(offset, line))

    def lookup(self, line: str) -> str | None:
        """Previous output for this record, or None to integrate it afresh."""
        offsets = self._buckets.get(record_hash(self.header, line))
        if not offsets:
            return None
        wanted = identity_text(self.header, line)
        for offset in offsets:
            candidate = self.fetch(offset).rstrip("\r\n")
            if identity_text(self.header, candidate) == wanted and self._at_target(candidate):
                return candidate
        return None
