# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""
JPL DE ephemeris adapter.

Reads a binary planetary ephemeris (SPK kernel such as de440.bsp) with
jplephem and serves heliocentric ecliptic J2000 positions in AU. The Moon
and Pluto are available separately, so the Earth entry is the Earth itself
rather than the Earth-Moon barycentre.

jplephem is imported lazily; the kernel is re-opened by path after
unpickling so the source can be shipped to worker processes.
"""
import logging
import os

import numpy as np

from encke.domain.orbital_mechanics import SolarConstants
from encke.domain.perturbers import EARTH, MOON, PLUTO

_log = logging.getLogger(__name__)

# J2000 mean obliquity, as sine and cosine.
_SIN_OBLIQ_2000 = 0.397777155931913701597179975942380896684
_COS_OBLIQ_2000 = 0.917482062069181825744000384639406458043

_SUN = 10
_EARTH_MOON_BARYCENTER = 3
# Perturber index -> NAIF barycentre ID relative to the SSB (0).
_BARYCENTER_IDS = {0: 1, 1: 2, 3: 4, 4: 5, 5: 6, 6: 7, 7: 8, PLUTO: 9}


def _require_jplephem():
    """Import jplephem lazily; raise clear error if not installed."""
    try:
        from jplephem.spk import SPK
    except ImportError:
        raise ImportError(
            "jplephem is required for DE ephemeris files. "
            "Install with: pip install jplephem"
        ) from None
    return SPK


def equatorial_to_ecliptic(vec: np.ndarray) -> np.ndarray:
    """Rotate an ICRF/J2000 equatorial vector into the J2000 ecliptic."""
    x, y, z = vec
    return np.array([
        x,
        _COS_OBLIQ_2000 * y + _SIN_OBLIQ_2000 * z,
        -_SIN_OBLIQ_2000 * y + _COS_OBLIQ_2000 * z,
    ])


class JplEphemeris:
    """EphemerisSource backed by a JPL SPK kernel.

    Args:
        path: Path to the .bsp kernel.

    Raises:
        FileNotFoundError: If the kernel does not exist.
    """

    supported: frozenset[int] = frozenset(range(MOON + 1))
    default_enabled: frozenset[int] = frozenset(range(MOON + 1))
    lumps_moon_into_earth: bool = False

    def __init__(self, path: str) -> None:
        if not os.path.isfile(path):
            raise FileNotFoundError(f"Ephemeris file not found: {path}")
        self.path = path
        self._kernel = None

    @property
    def kernel(self):
        if self._kernel is None:
            SPK = _require_jplephem()
            self._kernel = SPK.open(self.path)
            _log.info("Opened ephemeris %s", self.path)
        return self._kernel

    def close(self) -> None:
        if self._kernel is not None:
            self._kernel.close()
            self._kernel = None

    def __getstate__(self) -> dict:
        return {"path": self.path}

    def __setstate__(self, state: dict) -> None:
        self.path = state["path"]
        self._kernel = None

    def __repr__(self) -> str:
        return f"JplEphemeris({self.path!r})"

    def _ssb_km(self, index: int, jd: float) -> np.ndarray:
        kernel = self.kernel
        if index == EARTH or index == MOON:
            target = 399 if index == EARTH else 301
            return (kernel[0, _EARTH_MOON_BARYCENTER].compute(jd)
                    + kernel[_EARTH_MOON_BARYCENTER, target].compute(jd))
        return kernel[0, _BARYCENTER_IDS[index]].compute(jd)

    def position(self, index: int, jd: float) -> np.ndarray:
        if index not in self.supported:
            raise ValueError(f"Perturber {index} is not available from {self!r}")
        helio_km = self._ssb_km(index, jd) - self.kernel[0, _SUN].compute(jd)
        return equatorial_to_ecliptic(helio_km / SolarConstants.AU_KM)
