# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""
Port interface for perturber ephemeris sources.

Adapters implement this to provide heliocentric positions of the numbered
perturbers (see encke.domain.perturbers), either from an analytic series
or from a binary planetary ephemeris file.
"""
from typing import Protocol, runtime_checkable

import numpy as np


@runtime_checkable
class EphemerisSource(Protocol):
    """Port for heliocentric perturber positions."""

    @property
    def supported(self) -> frozenset[int]:
        """Perturber indices this source can position."""
        ...

    @property
    def default_enabled(self) -> frozenset[int]:
        """Perturber indices enabled unless the caller overrides them."""
        ...

    @property
    def lumps_moon_into_earth(self) -> bool:
        """True when the Earth entry is the Earth-Moon barycentre."""
        ...

    def position(self, index: int, jd: float) -> np.ndarray:
        """
        Heliocentric ecliptic J2000 position of a perturber.

        Args:
            index: Perturber index (0-12).
            jd: Julian Date (TT).

        Returns:
            Position (3,) in AU.
        """
        ...
