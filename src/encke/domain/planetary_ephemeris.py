# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""Compact analytic planetary ephemeris.

Heliocentric ecliptic J2000 positions of the planets and Pluto from mean
Keplerian elements with linear rates per Julian century. Accurate to a
few arcminutes over 1800-2050, which is ample for perturbation modeling
when no binary ephemeris file is available.

The Earth entry is the Earth-Moon barycentre, so the lunar mass is lumped
into the Earth and the Moon is not positioned separately.

References:
    Standish, E.M. "Keplerian Elements for Approximate Positions of the
    Major Planets." JPL Solar System Dynamics.
"""

import math

import numpy as np

from encke.domain.orbital_mechanics import orbit_plane_vectors, solve_kepler
from encke.domain.perturbers import PLUTO
from encke.domain.time_systems import DAYS_PER_JULIAN_CENTURY, J2000_JD

# (a AU, e, I deg, L deg, varpi deg, Omega deg), then rates per century.
_MEAN_ELEMENTS: tuple[tuple[tuple[float, ...], tuple[float, ...]], ...] = (
    # Mercury
    ((0.38709927, 0.20563593, 7.00497902, 252.25032350, 77.45779628, 48.33076593),
     (0.00000037, 0.00001906, -0.00594749, 149472.67411175, 0.16047689, -0.12534081)),
    # Venus
    ((0.72333566, 0.00677672, 3.39467605, 181.97909950, 131.60246718, 76.67984255),
     (0.00000390, -0.00004107, -0.00078890, 58517.81538729, 0.00268329, -0.27769418)),
    # Earth-Moon barycentre
    ((1.00000261, 0.01671123, -0.00001531, 100.46457166, 102.93768193, 0.0),
     (0.00000562, -0.00004392, -0.01294668, 35999.37244981, 0.32327364, 0.0)),
    # Mars
    ((1.52371034, 0.09339410, 1.84969142, -4.55343205, -23.94362959, 49.55953891),
     (0.00001847, 0.00007882, -0.00813131, 19140.30268499, 0.44441088, -0.29257343)),
    # Jupiter
    ((5.20288700, 0.04838624, 1.30439695, 34.39644051, 14.72847983, 100.47390909),
     (-0.00011607, -0.00013253, -0.00183714, 3034.74612775, 0.21252668, 0.20469106)),
    # Saturn
    ((9.53667594, 0.05386179, 2.48599187, 49.95424423, 92.59887831, 113.66242448),
     (-0.00125060, -0.00050991, 0.00193609, 1222.49362201, -0.41897216, -0.28867794)),
    # Uranus
    ((19.18916464, 0.04725744, 0.77263783, 313.23810451, 170.95427630, 74.01692503),
     (-0.00196176, -0.00004397, -0.00242939, 428.48202785, 0.40805281, 0.04240589)),
    # Neptune
    ((30.06992276, 0.00859048, 1.77004347, -55.12002969, 44.96476227, 131.78422574),
     (0.00026291, 0.00005105, 0.00035372, 218.45945325, -0.32241464, -0.00508664)),
    # Pluto
    ((39.48211675, 0.24882730, 17.14001206, 238.92903833, 224.06891629, 110.30393684),
     (-0.00031596, 0.00005170, 0.00004818, 145.20780515, -0.04062942, -0.01183482)),
)


def mean_element_position(index: int, jd: float) -> np.ndarray:
    """Heliocentric ecliptic J2000 position (AU) of planet ``index`` (0-8)."""
    base, rate = _MEAN_ELEMENTS[index]
    T = (jd - J2000_JD) / DAYS_PER_JULIAN_CENTURY
    a, ecc, incl, mean_lon, varpi, node = (b + r * T for b, r in zip(base, rate))

    mean_anom = math.radians((mean_lon - varpi) % 360.0)
    if mean_anom > math.pi:
        mean_anom -= 2.0 * math.pi
    ecc_anom = solve_kepler(ecc, mean_anom)

    x = a * (math.cos(ecc_anom) - ecc)
    y = a * math.sqrt(1.0 - ecc * ecc) * math.sin(ecc_anom)
    perih, side = orbit_plane_vectors(
        math.radians(incl), math.radians(varpi - node), math.radians(node),
    )
    return np.array(perih) * x + np.array(side) * y


class AnalyticEphemeris:
    """EphemerisSource backed by mean orbital elements.

    Positions Mercury through Neptune plus Pluto. Pluto is supported but
    not enabled by default; the Moon is never positioned (its mass rides
    on the Earth-Moon barycentre).
    """

    supported: frozenset[int] = frozenset(range(len(_MEAN_ELEMENTS)))
    default_enabled: frozenset[int] = frozenset(range(PLUTO))
    lumps_moon_into_earth: bool = True

    def position(self, index: int, jd: float) -> np.ndarray:
        if index not in self.supported:
            raise ValueError(f"Perturber {index} is not available from the analytic ephemeris")
        return mean_element_position(index, jd)

    def __repr__(self) -> str:
        return "AnalyticEphemeris()"
