# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""
Heliocentric two-body orbital mechanics.

Osculating elements in perihelion form (q, e, i, omega, Omega, Tp), the
closed-form two-body propagator used as the Encke baseline, and the
state-vector to element conversion used for rectification.
Units: AU, days, radians.
"""
import math
from dataclasses import dataclass, replace

import numpy as np


@dataclass(frozen=True)
class _SolarConstants:
    """Heliocentric constants in AU/day units."""
    GAUSS_K: float = 0.01720209895             # Gaussian gravitational constant
    SOLAR_GM: float = 0.01720209895 ** 2       # AU³/day²
    C_AU_PER_DAY: float = 173.1446326846693    # speed of light
    AU_KM: float = 149_597_870.7               # km per AU


SolarConstants: _SolarConstants = _SolarConstants()

_KEPLER_THRESH = 1e-12
_KEPLER_MIN_THRESH = 1e-15
_KEPLER_MAX_ITERATIONS = 7
_NEAR_PARABOLIC_ECC = 1e-5


@dataclass(frozen=True)
class OsculatingElements:
    """Two-body orbit valid at one instant (``epoch``).

    The angular elements define the orientation; ``perih_vec`` and
    ``sideways`` are the derived unit vectors spanning the orbital plane
    (towards perihelion and 90° ahead of it). ``t0`` is the time scale
    a^1.5/sqrt(gm) (days per radian of mean anomaly); ``w0`` is its
    parabolic counterpart.
    """
    q: float
    ecc: float
    incl: float
    arg_per: float
    asc_node: float
    epoch: float
    perih_time: float
    gm: float
    major_axis: float
    t0: float
    w0: float
    angular_momentum: float
    minor_to_major: float
    perih_vec: tuple[float, float, float]
    sideways: tuple[float, float, float]

    @property
    def is_parabolic(self) -> bool:
        return self.ecc == 1.0

    @property
    def period(self) -> float:
        """Orbital period in days (inf for open orbits)."""
        if self.ecc >= 1.0:
            return math.inf
        return 2.0 * math.pi * self.t0

    def with_epoch(self, epoch: float) -> "OsculatingElements":
        """Same orbit, relabelled to a new osculation epoch."""
        return replace(self, epoch=epoch)


def orbit_plane_vectors(
    incl: float, arg_per: float, asc_node: float,
) -> tuple[tuple[float, float, float], tuple[float, float, float]]:
    """Unit vectors towards perihelion and 90° ahead in the orbit plane."""
    ci, si = math.cos(incl), math.sin(incl)
    cw, sw = math.cos(arg_per), math.sin(arg_per)
    cO, sO = math.cos(asc_node), math.sin(asc_node)
    perih = (
        cO * cw - sO * sw * ci,
        sO * cw + cO * sw * ci,
        sw * si,
    )
    side = (
        -cO * sw - sO * cw * ci,
        -sO * sw + cO * cw * ci,
        cw * si,
    )
    return perih, side


def derive_elements(
    q: float,
    ecc: float,
    incl: float,
    arg_per: float,
    asc_node: float,
    perih_time: float,
    epoch: float | None = None,
    gm: float = SolarConstants.SOLAR_GM,
) -> OsculatingElements:
    """Build OsculatingElements from the angular elements.

    Args:
        q: Perihelion distance (AU), > 0.
        ecc: Eccentricity, >= 0.
        incl, arg_per, asc_node: Angles (radians).
        perih_time: Time of perihelion passage (JD).
        epoch: Osculation epoch (JD); defaults to ``perih_time``.
        gm: Central body GM (AU³/day²).

    Raises:
        ValueError: If q <= 0 or ecc < 0.
    """
    if not q > 0.0:
        raise ValueError(f"Perihelion distance must be positive, got {q}")
    if not ecc >= 0.0:
        raise ValueError(f"Eccentricity must be non-negative, got {ecc}")
    if ecc != 1.0:
        major_axis = q / abs(1.0 - ecc)
        t0 = major_axis * math.sqrt(major_axis / gm)
        w0 = 0.0
    else:
        major_axis = t0 = 0.0
        w0 = (3.0 / math.sqrt(2.0)) / (q * math.sqrt(q / gm))
    perih_vec, sideways = orbit_plane_vectors(incl, arg_per, asc_node)
    return OsculatingElements(
        q=q,
        ecc=ecc,
        incl=incl,
        arg_per=arg_per,
        asc_node=asc_node,
        epoch=perih_time if epoch is None else epoch,
        perih_time=perih_time,
        gm=gm,
        major_axis=major_axis,
        t0=t0,
        w0=w0,
        angular_momentum=math.sqrt(gm * q * (1.0 + ecc)),
        minor_to_major=math.sqrt(abs(1.0 - ecc * ecc)),
        perih_vec=perih_vec,
        sideways=sideways,
    )


# --- Kepler's equation ---

def _near_parabolic(ecc_anom: float, ecc: float) -> float:
    """E - e·sin(E) (or e·sinh(E) - E, negated) by series, for e ≈ 1.

    Avoids cancellation between E and e·sin(E) for small anomalies.
    """
    anom2 = ecc_anom * ecc_anom if ecc > 1.0 else -ecc_anom * ecc_anom
    term = ecc * anom2 * ecc_anom / 6.0
    rval = (1.0 - ecc) * ecc_anom - term
    n = 4
    while abs(term) > 1e-15:
        term *= anom2 / (n * (n + 1))
        rval -= term
        n += 2
    return rval


def solve_kepler(ecc: float, mean_anom: float) -> float:
    """Eccentric (or hyperbolic) anomaly for a given mean anomaly.

    Newton iteration with starting guesses tuned per regime; switches to
    the near-parabolic series when plain iteration stalls.
    """
    if mean_anom == 0.0:
        return 0.0

    offset = 0.0
    if ecc < 1.0:
        if mean_anom < -math.pi or mean_anom > math.pi:
            tmod = math.fmod(mean_anom, 2.0 * math.pi)
            if tmod > math.pi:
                tmod -= 2.0 * math.pi
            elif tmod < -math.pi:
                tmod += 2.0 * math.pi
            offset = mean_anom - tmod
            mean_anom = tmod

        if ecc < 0.9:
            curr = math.atan2(math.sin(mean_anom), math.cos(mean_anom) - ecc)
            for _ in range(50):
                err = (curr - ecc * math.sin(curr) - mean_anom) / (1.0 - ecc * math.cos(curr))
                curr -= err
                if abs(err) <= _KEPLER_THRESH:
                    break
            return curr + offset

    is_negative = mean_anom < 0.0
    if is_negative:
        mean_anom = -mean_anom

    curr = mean_anom
    thresh = max(_KEPLER_THRESH * abs(1.0 - ecc), _KEPLER_MIN_THRESH)
    if ecc > 1.0 and mean_anom / ecc > 3.0:
        curr = math.log(mean_anom / ecc) + 0.85
    elif (ecc > 0.8 and mean_anom < math.pi / 3.0) or ecc > 1.0:
        trial = mean_anom / abs(1.0 - ecc)
        if trial * trial > 6.0 * abs(1.0 - ecc):
            trial = math.copysign(abs(6.0 * mean_anom) ** (1.0 / 3.0), mean_anom)
        curr = trial
        thresh = min(thresh, _KEPLER_THRESH)

    delta_curr = 1.0
    n_iter = 0
    if ecc < 1.0:
        while abs(delta_curr) > thresh and n_iter < 50:
            n_iter += 1
            if n_iter > _KEPLER_MAX_ITERATIONS:
                err = _near_parabolic(curr, ecc) - mean_anom
            else:
                err = curr - ecc * math.sin(curr) - mean_anom
            delta_curr = -err / (1.0 - ecc * math.cos(curr))
            curr += delta_curr
    else:
        while abs(delta_curr) > thresh and n_iter < 50:
            n_iter += 1
            if n_iter > _KEPLER_MAX_ITERATIONS and ecc < 1.01:
                err = -_near_parabolic(curr, ecc) - mean_anom
            else:
                err = ecc * math.sinh(curr) - curr - mean_anom
            delta_curr = -err / (ecc * math.cosh(curr) - 1.0)
            curr += delta_curr
    return offset - curr if is_negative else offset + curr


def mean_anomaly(elem: OsculatingElements, t: float) -> float:
    """Mean anomaly (radians) at time t; elliptic orbits wrapped to [-pi, pi]."""
    if elem.is_parabolic:
        return 0.0
    m = (t - elem.perih_time) / elem.t0
    if elem.ecc < 1.0:
        m = math.fmod(m, 2.0 * math.pi)
        if m < -math.pi:
            m += 2.0 * math.pi
        elif m > math.pi:
            m -= 2.0 * math.pi
    return m


def two_body_state(elem: OsculatingElements, t: float) -> tuple[np.ndarray, np.ndarray]:
    """Heliocentric position (AU) and velocity (AU/day) at time t.

    Closed-form two-body motion for elliptic, parabolic and hyperbolic
    orbits; this is the baseline the Encke deviation is measured from.
    """
    dt = t - elem.perih_time
    ecc = elem.ecc
    if elem.is_parabolic:
        g = elem.w0 * dt * 0.5
        y = np.cbrt(g + math.sqrt(g * g + 1.0))
        true_anom = 2.0 * math.atan(y - 1.0 / y)
    else:
        ecc_anom = solve_kepler(ecc, mean_anomaly(elem, t))
        if ecc > 1.0:
            x = ecc - math.cosh(ecc_anom)
            y = math.sinh(ecc_anom)
        else:
            x = math.cos(ecc_anom) - ecc
            y = math.sin(ecc_anom)
        true_anom = math.atan2(y * elem.minor_to_major, x)

    cos_nu = math.cos(true_anom)
    sin_nu = math.sin(true_anom)
    r0 = elem.q * (1.0 + ecc)
    r = r0 / (1.0 + ecc * cos_nu)
    x = r * cos_nu
    y = r * sin_nu

    perih = np.array(elem.perih_vec)
    side = np.array(elem.sideways)
    pos = perih * x + side * y

    angular_component = elem.angular_momentum / (r * r)
    radial_component = ecc * sin_nu * elem.angular_momentum / (r * r0)
    x1 = x * radial_component - y * angular_component
    y1 = y * radial_component + x * angular_component
    vel = perih * x1 + side * y1
    return pos, vel


# --- Rectification: state vector -> elements ---

def _remaining_terms(ival: float) -> float:
    """sin/sinh series minus its leading term, divided by E (see below)."""
    rval = 0.0
    z = 1.0
    i = 2
    while True:
        z *= ival / (i * (i + 1))
        rval += z
        i += 2
        if abs(z) <= 1e-30:
            return rval


def elements_from_state(
    state: np.ndarray,
    t: float,
    gm: float = SolarConstants.SOLAR_GM,
) -> OsculatingElements:
    """Osculating elements from a heliocentric state vector at time t.

    Danby, Fundamentals of Celestial Mechanics, pp. 204-206, with care
    taken near e = 0 (degenerate angles) and e = 1 (loss of precision in
    q and the mean anomaly).

    Args:
        state: (x, y, z, vx, vy, vz) in AU and AU/day.
        t: Epoch of the state (JD); becomes the osculation epoch.
        gm: Central body GM.

    Raises:
        ValueError: If the state is degenerate (at rest, on a radial line,
            or at the origin).
    """
    r = np.asarray(state[:3], dtype=np.float64)
    v = np.asarray(state[3:6], dtype=np.float64)
    dist = float(np.linalg.norm(r))
    v2 = float(np.dot(v, v))
    r_dot_v = float(np.dot(r, v))
    h = np.cross(r, v)
    n0 = math.hypot(float(h[0]), float(h[1]))
    h0 = float(np.linalg.norm(h))
    if dist <= 0.0 or v2 <= 0.0 or h0 <= 0.0:
        raise ValueError("Degenerate state vector: elements are undefined")
    inv_major_axis = 2.0 / dist - v2 / gm

    asc_node = 0.0 if n0 == 0.0 else math.atan2(float(h[0]), float(-h[1]))
    incl = math.asin(min(1.0, n0 / h0))
    if h[2] < 0.0:
        incl = math.pi - incl

    e = np.cross(v, h) / gm - r / dist
    e -= h * (float(np.dot(e, h)) / (h0 * h0))
    ecc2 = float(np.dot(e, e))
    if abs(ecc2 - 1.0) < 1e-14:
        ecc2 = 1.0
    minor_to_major = math.sqrt(abs(1.0 - ecc2))
    ecc = math.sqrt(ecc2)
    e = r / dist if ecc == 0.0 else e / ecc

    if ecc < 0.9:
        q = (1.0 - ecc) / inv_major_axis
    else:
        gm_over_h0 = gm / h0
        perihelion_speed = gm_over_h0 * (
            1.0 + math.sqrt(max(0.0, 1.0 - inv_major_axis * h0 * h0 / gm))
        )
        q = h0 / perihelion_speed
        inv_major_axis = (1.0 - ecc) / q
    if not q > 0.0:
        raise ValueError("Degenerate state vector: perihelion distance <= 0")

    major_axis = t0 = w0 = 0.0
    if inv_major_axis:
        major_axis = abs(1.0 / inv_major_axis)
        t0 = major_axis * math.sqrt(major_axis / gm)

    sideways = np.cross(h, e)
    if not n0:
        # In the ecliptic the node is arbitrary; measure from the x axis.
        arg_per = normalize_angle(math.atan2(float(e[1] * h[2]) / h0, float(e[0])))
    else:
        cos_arg_per = float(h[0] * e[1] - h[1] * e[0]) / n0
        if -0.7 < cos_arg_per < 0.7:
            arg_per = math.acos(cos_arg_per)
        else:
            # acos loses precision near 0 and pi
            sin_arg_per = float(e[0] * h[0] * h[2] + e[1] * h[1] * h[2] - e[2] * n0 * n0) / (n0 * h0)
            arg_per = abs(math.asin(max(-1.0, min(1.0, sin_arg_per))))
            if cos_arg_per < 0.0:
                arg_per = math.pi - arg_per
        if e[2] < 0.0:
            arg_per = 2.0 * math.pi - arg_per

    if inv_major_axis and minor_to_major:
        is_nearly_parabolic = abs(ecc - 1.0) < _NEAR_PARABOLIC_ECC
        r_cos_nu = float(np.dot(r, e))
        r_sin_nu = float(np.dot(r, sideways)) / h0
        sin_E = r_sin_nu * inv_major_axis / minor_to_major
        if inv_major_axis > 0.0:
            cos_E = r_cos_nu * inv_major_axis + ecc
            ecc_anom = math.atan2(sin_E, cos_E)
            if is_nearly_parabolic:
                mean_anom = ecc_anom * (1.0 - ecc) - ecc * ecc_anom * _remaining_terms(-ecc_anom * ecc_anom)
            else:
                mean_anom = ecc_anom - ecc * sin_E
            perih_time = t - mean_anom * t0
        else:
            ecc_anom = math.asinh(sin_E)
            if is_nearly_parabolic:
                mean_anom = ecc_anom * (1.0 - ecc) - ecc * ecc_anom * _remaining_terms(ecc_anom * ecc_anom)
            else:
                mean_anom = ecc_anom - ecc * sin_E
            perih_time = t - mean_anom * t0
    else:
        tau = math.sqrt(max(0.0, dist / q - 1.0))
        if r_dot_v < 0.0:
            tau = -tau
        w0 = (3.0 / math.sqrt(2.0)) / (q * math.sqrt(q / gm))
        perih_time = t - tau * (tau * tau / 3.0 + 1.0) * 3.0 / w0

    sideways = sideways / h0
    return OsculatingElements(
        q=q,
        ecc=ecc,
        incl=incl,
        arg_per=arg_per,
        asc_node=asc_node,
        epoch=t,
        perih_time=perih_time,
        gm=gm,
        major_axis=major_axis,
        t0=t0,
        w0=w0,
        angular_momentum=h0,
        minor_to_major=minor_to_major,
        perih_vec=(float(e[0]), float(e[1]), float(e[2])),
        sideways=(float(sideways[0]), float(sideways[1]), float(sideways[2])),
    )


def normalize_angle(angle: float) -> float:
    """Wrap an angle into [0, 2π)."""
    wrapped = math.fmod(angle, 2.0 * math.pi)
    if wrapped < 0.0:
        wrapped += 2.0 * math.pi
    return wrapped
