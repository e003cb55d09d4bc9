# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""
Perturbing bodies: indices, masses, radii and catalog designations.

Thirteen bodies are tracked. Indices 0-9 (planets, Pluto and the Moon) are
close-approach capable and get softened near their physical radius; the
three massive asteroids (10-12) come from the catalog itself and are
never softened.
"""
import re
from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class Perturber:
    """One perturbing body."""
    index: int
    name: str
    relative_mass: float        # GM / GM_sun
    radius_km: float
    close_approach: bool
    designation: str | None = None     # catalog designation, if it is a catalog object


_EARTH_MASS = 3.003489596331057e-6
_EARTH_MOON_MASS_RATIO = 81.30056

PERTURBERS: tuple[Perturber, ...] = (
    Perturber(0, "Mercury", 1.660136795271931e-7, 2439.7, True),
    Perturber(1, "Venus", 2.447838339664545e-6, 6051.8, True),
    Perturber(2, "Earth", _EARTH_MASS, 6378.137, True),
    Perturber(3, "Mars", 3.227151445053866e-7, 3396.19, True),
    Perturber(4, "Jupiter", 9.547919384243268e-4, 71492.0, True),
    Perturber(5, "Saturn", 2.858859806661309e-4, 60268.0, True),
    Perturber(6, "Uranus", 4.366244043351564e-5, 25559.0, True),
    Perturber(7, "Neptune", 5.151389020466116e-5, 24764.0, True),
    Perturber(8, "Pluto", 7.396449704142013e-9, 1188.3, True, "134340"),
    Perturber(9, "Moon", _EARTH_MASS / _EARTH_MOON_MASS_RATIO, 1737.4, True),
    Perturber(10, "Ceres", 4.7622e-10, 469.7, False, "1"),
    Perturber(11, "Pallas", 1.0775e-10, 256.0, False, "2"),
    Perturber(12, "Vesta", 1.3412e-10, 262.7, False, "4"),
)

N_PERTURBERS = len(PERTURBERS)

EARTH = 2
PLUTO = 8
MOON = 9
ASTEROID_INDICES: tuple[int, ...] = (10, 11, 12)
PLANET_INDICES: tuple[int, ...] = tuple(range(8))

PLACEHOLDER_DISTANCE_AU = 1e8
"""Distance at which a disabled perturber is parked; its pull is negligible."""

_PARENTHESISED_NUMBER = re.compile(r"^\((\d+)\)")


def normalize_designation(text: str) -> str:
    """Leading catalog designation token, with number parentheses removed.

    '(1) Ceres' -> '1', '4 Vesta' -> '4', '2004 MN4' -> '2004'.
    """
    token = text.strip()
    m = _PARENTHESISED_NUMBER.match(token)
    if m:
        return m.group(1)
    return token.split()[0] if token else ""


def perturber_for_designation(designation: str) -> Perturber | None:
    """The perturber a catalog designation refers to, if any.

    Matches on the normalized leading token, so '(1) Ceres' and '1' both
    resolve to Ceres.
    """
    key = normalize_designation(designation)
    for body in PERTURBERS:
        if body.designation is not None and body.designation == key:
            return body
    return None


def relative_masses(lump_moon_into_earth: bool = False) -> np.ndarray:
    """Mass table (GM / GM_sun) indexed by perturber.

    With ``lump_moon_into_earth`` the Earth entry carries the Earth-Moon
    system mass; used when the Earth position is the barycentre.
    """
    masses = np.array([body.relative_mass for body in PERTURBERS], dtype=np.float64)
    if lump_moon_into_earth:
        masses[EARTH] += masses[MOON]
    return masses


def radii_au(au_km: float) -> np.ndarray:
    """Physical radius table in AU; zero for bodies that are never softened."""
    return np.array(
        [body.radius_km / au_km if body.close_approach else 0.0 for body in PERTURBERS],
        dtype=np.float64,
    )
