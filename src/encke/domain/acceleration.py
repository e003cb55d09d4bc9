# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""
Encke deviation acceleration.

The integrated quantity is the deviation of the true heliocentric state
from the two-body baseline, so the acceleration returned here is that of
the deviation: the difference of the solar two-body pulls at the true and
baseline positions, plus the perturber pulls and the relativistic term at
the true position.

Perturber pulls use the heliocentric form: the direct attraction on the
object minus the attraction of the same body on the Sun.

Close approaches to the planets, Pluto and the Moon are softened:
inside 80% of a body's (fudged) radius its pull is dropped, between 80%
and 100% it is faded in with a cubic S-curve.
"""
import numpy as np

from encke.domain.orbital_mechanics import (
    OsculatingElements,
    SolarConstants,
    two_body_state,
)

SOFTENING_INNER = 0.8
"""Fraction of the body radius below which a perturber's pull is dropped."""


def softening_factor(distance, radius):
    """Scale applied to a perturber's pull at a given distance.

    0 for distance <= 0.8·radius, 1 for distance >= radius, and the
    smoothstep t²(3 - 2t) in between. A radius of 0 means "never soften".
    Accepts scalars or numpy arrays.
    """
    distance = np.asarray(distance, dtype=np.float64)
    radius = np.asarray(radius, dtype=np.float64)
    safe_radius = np.where(radius > 0.0, radius, 1.0)
    ratio = np.where(radius > 0.0, distance / safe_radius, np.inf)
    t = np.clip((ratio - SOFTENING_INNER) / (1.0 - SOFTENING_INNER), 0.0, 1.0)
    factor = t * t * (3.0 - 2.0 * t)
    if factor.ndim == 0:
        return float(factor)
    return factor


def two_body_difference(baseline_pos: np.ndarray, delta_pos: np.ndarray) -> np.ndarray:
    """p/|p|³ - r/|r|³ with r = p + δ, free of cancellation for small δ.

    With q = 2p·δ + δ·δ = r² - p², the difference of cubes is
    r³ - p³ = q(r² + rp + p²)/(r + p), and the result is
    (p(r³ - p³)/p³ - δ)/r³. Multiply by GM for an acceleration.
    """
    p2 = float(np.dot(baseline_pos, baseline_pos))
    q = 2.0 * float(np.dot(baseline_pos, delta_pos)) + float(np.dot(delta_pos, delta_pos))
    r2 = p2 + q
    p = np.sqrt(p2)
    r = np.sqrt(r2)
    p3 = p2 * p
    r3 = r2 * r
    cube_diff = q * (r2 + r * p + p2) / (r + p)
    return (baseline_pos * (cube_diff / p3) - delta_pos) / r3


def relativistic_acceleration(
    pos: np.ndarray,
    vel: np.ndarray,
    gm: float = SolarConstants.SOLAR_GM,
    c: float = SolarConstants.C_AU_PER_DAY,
) -> np.ndarray:
    """Solar Schwarzschild term, a = GM/(c²r³)·[(4GM/r - v²)r + 4(r·v)v]."""
    r_sq = float(np.dot(pos, pos))
    r = np.sqrt(r_sq)
    v_sq = float(np.dot(vel, vel))
    r_dot_v = float(np.dot(pos, vel))
    coeff = gm / (c * c * r * r_sq)
    return coeff * ((4.0 * gm / r - v_sq) * pos + 4.0 * r_dot_v * vel)


class AccelerationModel:
    """Deviation derivatives for one object's integration.

    Args:
        positions: Off-grid perturber position provider; an object with
            ``positions_at(jd) -> ndarray (13, 3)`` (a PerturberCache).
        active: Perturber indices that pull on this object.
        masses: Relative mass table (GM / GM_sun) per perturber index.
        radii: Softening radius per perturber index (AU, fudge applied);
            0 disables softening for that body.
        gm: Solar GM.
        relativity: Include the relativistic term.
    """

    def __init__(
        self,
        positions,
        active: tuple[int, ...],
        masses: np.ndarray,
        radii: np.ndarray,
        gm: float = SolarConstants.SOLAR_GM,
        relativity: bool = True,
    ) -> None:
        self.positions = positions
        self.active = tuple(sorted(active))
        self._active_idx = np.array(self.active, dtype=np.intp)
        self._gm_masses = gm * np.asarray(masses, dtype=np.float64)[self._active_idx]
        self._radii = np.asarray(radii, dtype=np.float64)[self._active_idx]
        self.gm = gm
        self.relativity = relativity

    def stage_positions(self, jd: float, h: float) -> np.ndarray | None:
        """Cached (6, 13, 3) stage positions for a step, if on the cache grid."""
        if not self.active or self.positions is None:
            return None
        return self.positions.stage_positions(jd, h)

    def perturbation(self, pos: np.ndarray, perturber_pos: np.ndarray) -> np.ndarray:
        """Summed perturber acceleration at heliocentric position ``pos``."""
        if not self.active:
            return np.zeros(3)
        bodies = perturber_pos[self._active_idx]
        diff = bodies - pos
        d_sq = np.einsum("ij,ij->i", diff, diff)
        d = np.sqrt(d_sq)
        b_sq = np.einsum("ij,ij->i", bodies, bodies)
        scale = self._gm_masses * softening_factor(d, self._radii)
        direct = np.divide(scale, d_sq * d, out=np.zeros_like(scale), where=scale > 0.0)
        indirect = scale / (b_sq * np.sqrt(b_sq))
        return direct @ diff - indirect @ bodies

    def derivatives(
        self,
        jd: float,
        elements: OsculatingElements,
        delta: np.ndarray,
        perturber_pos: np.ndarray | None = None,
    ) -> np.ndarray:
        """Time derivative of the 6-component deviation at ``jd``.

        ``perturber_pos`` is the (13, 3) position table for this instant;
        when None it is fetched from the position provider.
        """
        base_pos, base_vel = two_body_state(elements, jd)
        pos = base_pos + delta[:3]
        accel = self.gm * two_body_difference(base_pos, delta[:3])
        if self.active:
            if perturber_pos is None:
                perturber_pos = self.positions.positions_at(jd)
            accel += self.perturbation(pos, perturber_pos)
        if self.relativity:
            accel += relativistic_acceleration(pos, base_vel + delta[3:], self.gm)
        return np.concatenate((delta[3:], accel))
