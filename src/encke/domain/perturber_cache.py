# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""
Perturber position cache.

Most of the cost of propagating a catalog is evaluating perturber
positions. Every object integrated over the same span on the same
macro-step grid needs the same positions, so they are computed once per
run into a table indexed by [macro-step][RK stage][perturber] and shared
read-only. Steps that fall off the grid (sub-steps after a rejected step,
spans starting off-grid) evaluate positions directly.

Disabled perturbers are parked at a placeholder position 1e8 AU away.
"""
import bisect
import logging
import math
from dataclasses import dataclass

import numpy as np

from encke.domain.orbital_mechanics import OsculatingElements, two_body_state
from encke.domain.perturbers import N_PERTURBERS, PLACEHOLDER_DISTANCE_AU
from encke.domain.rkf45 import STAGE_FRACTIONS

_log = logging.getLogger(__name__)

GRID_TOLERANCE_DAYS = 1e-6
"""Times and step sizes closer than this to the grid are treated as on it."""


@dataclass(frozen=True)
class AsteroidTrack:
    """Piecewise two-body path of a catalog object used as a perturber.

    Each macro-step of the object's own integration contributes the
    osculating elements that were the baseline over that step. Times
    outside the integrated span use the elements of the nearest step.
    """
    index: int
    starts: tuple[float, ...]           # ascending interval starts
    elements: tuple[OsculatingElements, ...]

    @classmethod
    def from_steps(cls, index: int, steps) -> "AsteroidTrack":
        """Build from MacroStep records (either integration direction)."""
        intervals = sorted(
            (min(step.jd_start, step.jd_end), step.elements) for step in steps
        )
        if not intervals:
            raise ValueError(f"Asteroid track for perturber {index} has no steps")
        return cls(
            index=index,
            starts=tuple(start for start, _ in intervals),
            elements=tuple(elem for _, elem in intervals),
        )

    def position(self, jd: float) -> np.ndarray:
        i = max(0, bisect.bisect_right(self.starts, jd) - 1)
        pos, _ = two_body_state(self.elements[i], jd)
        return pos


class PerturberCache:
    """Perturber positions on a fixed macro-step grid.

    Grid point i is at ``jd0 + i * step``; ``step`` carries the sign of
    the integration direction. ``table[i, s]`` holds all 13 positions at
    ``jd0 + (i + STAGE_FRACTIONS[s]) * step``.
    """

    def __init__(
        self,
        ephemeris,
        enabled: frozenset[int],
        jd0: float,
        step: float,
        table: np.ndarray,
        tracks: tuple[AsteroidTrack, ...] = (),
    ) -> None:
        self.ephemeris = ephemeris
        self.enabled = frozenset(enabled)
        self.jd0 = jd0
        self.step = step
        self.table = table
        self.tracks = tracks
        self._track_by_index = {track.index: track for track in tracks}

    @property
    def n_steps(self) -> int:
        return self.table.shape[0]

    @classmethod
    def build(
        cls,
        ephemeris,
        jd_start: float,
        jd_end: float,
        step_days: float,
        enabled: frozenset[int],
        margin: int = 2,
        tracks: tuple[AsteroidTrack, ...] = (),
    ) -> "PerturberCache":
        """Compute the position table for [jd_start, jd_end] plus margin.

        Raises:
            RuntimeError: If the table cannot be allocated.
            ValueError: If an enabled perturber has neither an ephemeris
                entry nor an asteroid track.
        """
        supported = ephemeris.supported if ephemeris is not None else frozenset()
        tracked = {track.index for track in tracks}
        missing = set(enabled) - set(supported) - tracked
        if missing:
            raise ValueError(f"No position source for perturbers {sorted(missing)}")

        step = math.copysign(step_days, jd_end - jd_start) if jd_end != jd_start else step_days
        n_steps = int(math.ceil(abs(jd_end - jd_start) / step_days)) + 2 * margin + 1
        jd0 = jd_start - margin * step
        try:
            table = np.full(
                (n_steps, len(STAGE_FRACTIONS), N_PERTURBERS, 3),
                PLACEHOLDER_DISTANCE_AU,
                dtype=np.float64,
            )
        except MemoryError as exc:
            raise RuntimeError(
                f"Perturber cache allocation failed ({n_steps} steps)"
            ) from exc

        cache = cls(ephemeris, enabled, jd0, step, table, tracks)
        for i in range(n_steps):
            for s, frac in enumerate(STAGE_FRACTIONS):
                table[i, s] = cache.positions_at(jd0 + (i + frac) * step)
        table.flags.writeable = False
        _log.debug(
            "Perturber cache: %d steps of %.3f d from JD %.4f, %d perturbers",
            n_steps, step, jd0, len(enabled),
        )
        return cache

    @classmethod
    def uncached(cls, ephemeris, enabled: frozenset[int]) -> "PerturberCache":
        """Position provider with an empty grid; every lookup is evaluated."""
        table = np.empty((0, len(STAGE_FRACTIONS), N_PERTURBERS, 3))
        table.flags.writeable = False
        return cls(ephemeris, enabled, 0.0, 1.0, table)

    def with_track(self, track: AsteroidTrack) -> "PerturberCache":
        """New cache with ``track`` enabled and filled into the grid."""
        tracks = tuple(t for t in self.tracks if t.index != track.index) + (track,)
        enabled = self.enabled | {track.index}
        try:
            table = self.table.copy()
        except MemoryError as exc:
            raise RuntimeError("Perturber cache allocation failed") from exc
        for i in range(self.n_steps):
            for s, frac in enumerate(STAGE_FRACTIONS):
                table[i, s, track.index] = track.position(self.jd0 + (i + frac) * self.step)
        table.flags.writeable = False
        return PerturberCache(self.ephemeris, enabled, self.jd0, self.step, table, tracks)

    def grid_index(self, jd: float) -> int | None:
        """Index of the grid point at ``jd``, or None when off the grid."""
        if not self.n_steps:
            return None
        x = (jd - self.jd0) / self.step
        i = round(x)
        if abs(x - i) * abs(self.step) > GRID_TOLERANCE_DAYS:
            return None
        if 0 <= i < self.n_steps:
            return int(i)
        return None

    def stage_positions(self, jd: float, h: float) -> np.ndarray | None:
        """Cached (6, 13, 3) positions for an RK step (jd, h), else None."""
        if abs(h - self.step) > GRID_TOLERANCE_DAYS:
            return None
        i = self.grid_index(jd)
        if i is None:
            return None
        return self.table[i]

    def positions_at(self, jd: float) -> np.ndarray:
        """All 13 positions at an arbitrary time (placeholder if disabled)."""
        positions = np.full((N_PERTURBERS, 3), PLACEHOLDER_DISTANCE_AU)
        for index in self.enabled:
            track = self._track_by_index.get(index)
            if track is not None:
                positions[index] = track.position(jd)
            else:
                positions[index] = self.ephemeris.position(index, jd)
        return positions
