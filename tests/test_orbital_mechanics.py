# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""Tests for the two-body propagator and state/element conversion."""

import math

import numpy as np
import pytest

from encke.domain.orbital_mechanics import (
    SolarConstants,
    derive_elements,
    elements_from_state,
    normalize_angle,
    solve_kepler,
    two_body_state,
)

T_PERI = 2460000.5
GM = SolarConstants.SOLAR_GM


def _state(elem, t):
    pos, vel = two_body_state(elem, t)
    return np.concatenate((pos, vel))


class TestDeriveElements:

    def test_rejects_non_positive_q(self):
        with pytest.raises(ValueError, match="Perihelion"):
            derive_elements(0.0, 0.1, 0.0, 0.0, 0.0, T_PERI)
        with pytest.raises(ValueError):
            derive_elements(-1.0, 0.1, 0.0, 0.0, 0.0, T_PERI)

    def test_rejects_negative_eccentricity(self):
        with pytest.raises(ValueError, match="Eccentricity"):
            derive_elements(1.0, -0.1, 0.0, 0.0, 0.0, T_PERI)

    def test_epoch_defaults_to_perihelion_time(self):
        assert derive_elements(1.0, 0.1, 0.0, 0.0, 0.0, T_PERI).epoch == T_PERI

    def test_period_of_one_au_circle(self):
        elem = derive_elements(1.0, 0.0, 0.0, 0.0, 0.0, T_PERI)
        assert elem.period == pytest.approx(365.2568983, rel=1e-9)

    def test_open_orbits_have_no_period(self):
        assert derive_elements(1.0, 1.2, 0.0, 0.0, 0.0, T_PERI).period == math.inf
        assert derive_elements(1.0, 1.0, 0.0, 0.0, 0.0, T_PERI).is_parabolic

    def test_plane_vectors_orthonormal(self):
        elem = derive_elements(1.0, 0.3, 0.4, 1.1, 2.2, T_PERI)
        p, s = np.array(elem.perih_vec), np.array(elem.sideways)
        assert np.linalg.norm(p) == pytest.approx(1.0)
        assert np.linalg.norm(s) == pytest.approx(1.0)
        assert np.dot(p, s) == pytest.approx(0.0, abs=1e-15)


class TestSolveKepler:

    @pytest.mark.parametrize("ecc", [0.0, 0.1, 0.5, 0.89, 0.95, 0.999])
    @pytest.mark.parametrize("mean_anom", [-3.0, -0.01, 1e-4, 0.5, 2.9, 7.5])
    def test_elliptic_residual(self, ecc, mean_anom):
        ecc_anom = solve_kepler(ecc, mean_anom)
        assert ecc_anom - ecc * math.sin(ecc_anom) == pytest.approx(mean_anom, abs=1e-10)

    @pytest.mark.parametrize("ecc", [1.001, 1.5, 3.0])
    @pytest.mark.parametrize("mean_anom", [-2.0, 0.01, 1.0, 40.0])
    def test_hyperbolic_residual(self, ecc, mean_anom):
        ecc_anom = solve_kepler(ecc, mean_anom)
        residual = ecc * math.sinh(ecc_anom) - ecc_anom - mean_anom
        assert residual == pytest.approx(0.0, abs=1e-9 * max(1.0, abs(mean_anom)))

    def test_zero_mean_anomaly(self):
        assert solve_kepler(0.7, 0.0) == 0.0


class TestTwoBodyState:

    def test_at_perihelion(self):
        elem = derive_elements(1.0, 0.5, 0.0, 0.0, 0.0, T_PERI)
        pos, vel = two_body_state(elem, T_PERI)
        np.testing.assert_allclose(pos, [1.0, 0.0, 0.0], atol=1e-15)
        np.testing.assert_allclose(vel, [0.0, math.sqrt(GM * 1.5), 0.0], atol=1e-15)

    def test_energy_conserved_on_ellipse(self):
        elem = derive_elements(1.2, 0.4, 0.3, 1.0, 2.0, T_PERI)
        a = elem.major_axis
        for dt in (-400.0, -3.0, 0.0, 50.0, 900.0):
            pos, vel = two_body_state(elem, T_PERI + dt)
            energy = 0.5 * np.dot(vel, vel) - GM / np.linalg.norm(pos)
            assert energy == pytest.approx(-GM / (2.0 * a), rel=1e-11)

    def test_parabola_escape_speed(self):
        elem = derive_elements(0.8, 1.0, 0.2, 0.5, 1.0, T_PERI)
        for dt in (-100.0, 0.0, 30.0):
            pos, vel = two_body_state(elem, T_PERI + dt)
            assert np.dot(vel, vel) == pytest.approx(2.0 * GM / np.linalg.norm(pos), rel=1e-12)

    def test_periodic(self):
        elem = derive_elements(2.0, 0.2, 0.1, 0.2, 0.3, T_PERI)
        pos0, _ = two_body_state(elem, T_PERI + 10.0)
        pos1, _ = two_body_state(elem, T_PERI + 10.0 + elem.period)
        np.testing.assert_allclose(pos1, pos0, atol=1e-11)


class TestElementsFromState:

    @pytest.mark.parametrize("q, ecc, incl", [
        (2.1, 0.15, 0.2),        # main belt
        (0.4, 0.7, 0.05),        # near-Earth
        (1.0, 0.95, 1.2),        # high eccentricity branch
        (1.5, 0.3, 2.6),         # retrograde
        (1.8, 0.1, 0.0),         # in the ecliptic
        (1.3, 1.6, 0.7),         # hyperbolic
        (0.9, 1.02, 0.4),        # hyperbolic, close to parabolic
    ])
    def test_round_trip_reproduces_motion(self, q, ecc, incl):
        elem = derive_elements(q, ecc, incl, 0.8, 4.0, T_PERI)
        t = T_PERI + 37.0
        recovered = elements_from_state(_state(elem, t), t, GM)
        assert recovered.epoch == t
        assert recovered.q == pytest.approx(q, rel=1e-10)
        assert recovered.ecc == pytest.approx(ecc, abs=1e-11)
        assert recovered.incl == pytest.approx(incl, abs=1e-10)
        assert recovered.perih_time == pytest.approx(T_PERI, abs=1e-7)
        for later in (t - 20.0, t + 90.0):
            np.testing.assert_allclose(
                two_body_state(recovered, later)[0], two_body_state(elem, later)[0], atol=1e-10,
            )

    def test_near_parabolic(self):
        elem = derive_elements(0.7, 0.99999, 0.3, 1.0, 2.0, T_PERI)
        t = T_PERI + 15.0
        recovered = elements_from_state(_state(elem, t), t, GM)
        assert recovered.q == pytest.approx(0.7, rel=1e-9)
        assert recovered.ecc == pytest.approx(0.99999, abs=1e-9)
        np.testing.assert_allclose(
            two_body_state(recovered, t + 10.0)[0], two_body_state(elem, t + 10.0)[0], atol=1e-8,
        )

    def test_circular_orbit(self):
        elem = derive_elements(1.0, 0.0, 0.4, 0.0, 1.0, T_PERI)
        t = T_PERI + 100.0
        recovered = elements_from_state(_state(elem, t), t, GM)
        assert recovered.ecc < 1e-7
        assert recovered.q == pytest.approx(1.0, rel=1e-7)
        np.testing.assert_allclose(
            two_body_state(recovered, t + 30.0)[0], two_body_state(elem, t + 30.0)[0], atol=1e-10,
        )

    def test_radial_state_is_degenerate(self):
        with pytest.raises(ValueError, match="Degenerate"):
            elements_from_state(np.array([1.0, 0.0, 0.0, 0.01, 0.0, 0.0]), T_PERI, GM)

    def test_state_at_rest_is_degenerate(self):
        with pytest.raises(ValueError):
            elements_from_state(np.array([1.0, 0.0, 0.0, 0.0, 0.0, 0.0]), T_PERI, GM)


class TestNormalizeAngle:

    @pytest.mark.parametrize("angle", [-0.1, 0.0, 3.0, 2.0 * math.pi, 13.0, -20.0])
    def test_range(self, angle):
        wrapped = normalize_angle(angle)
        assert 0.0 <= wrapped < 2.0 * math.pi
        assert math.sin(wrapped) == pytest.approx(math.sin(angle), abs=1e-12)
