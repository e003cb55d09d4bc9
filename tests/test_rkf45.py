# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""Tests for the RKF45 deviation integrator."""

import math

import numpy as np
import pytest

from encke.domain.acceleration import AccelerationModel
from encke.domain.config import IntegrationConfig
from encke.domain.orbital_mechanics import SolarConstants, derive_elements
from encke.domain.perturbers import radii_au, relative_masses
from encke.domain.rkf45 import (
    STAGE_FRACTIONS,
    _A,
    _B5,
    _E,
    _new_step_size,
    integrate_span,
    rkf45_step,
)

JD0 = 2460000.5
ELEM = derive_elements(2.0, 0.1, 0.1, 0.2, 0.3, JD0)


class ConstantAcceleration:
    """Deviation under a constant acceleration: delta = a t² / 2."""

    def __init__(self, accel):
        self.accel = np.asarray(accel, dtype=np.float64)
        self.calls = 0

    def stage_positions(self, jd, h):
        return None

    def derivatives(self, jd, elements, delta, perturber_pos=None):
        self.calls += 1
        return np.concatenate((delta[3:], self.accel))


class Oscillator:
    """x'' = -x on the first axis; stiff enough to force step rejections."""

    def stage_positions(self, jd, h):
        return None

    def derivatives(self, jd, elements, delta, perturber_pos=None):
        return np.array([delta[3], delta[4], delta[5], -delta[0], 0.0, 0.0])


class NotANumber:

    def stage_positions(self, jd, h):
        return None

    def derivatives(self, jd, elements, delta, perturber_pos=None):
        return np.full(6, np.nan)


class TestTableau:

    def test_rows_sum_to_abscissae(self):
        for s in range(1, 6):
            assert sum(_A[s]) == pytest.approx(STAGE_FRACTIONS[s], abs=1e-15)

    def test_fifth_order_weights_sum_to_one(self):
        assert sum(_B5) == pytest.approx(1.0, abs=1e-15)

    def test_error_weights_sum_to_zero(self):
        assert sum(_E) == pytest.approx(0.0, abs=1e-15)


class TestStep:

    def test_six_evaluations(self):
        model = ConstantAcceleration([1e-8, 0.0, 0.0])
        rkf45_step(JD0, ELEM, np.zeros(6), 2.0, model)
        assert model.calls == 6

    def test_exact_for_quadratic_motion(self):
        model = ConstantAcceleration([1e-8, -2e-8, 3e-8])
        new_delta, err = rkf45_step(JD0, ELEM, np.zeros(6), 4.0, model)
        np.testing.assert_allclose(new_delta[:3], 0.5 * model.accel * 16.0, rtol=1e-12)
        np.testing.assert_allclose(new_delta[3:], model.accel * 4.0, rtol=1e-12)
        assert np.dot(err, err) < 1e-40

    def test_without_error(self):
        _, err = rkf45_step(JD0, ELEM, np.zeros(6), 1.0, ConstantAcceleration([0, 0, 0]),
                            with_error=False)
        assert err is None


class TestStepSizeControl:

    CONFIG = IntegrationConfig()

    def test_zero_error_grows_by_max(self):
        assert _new_step_size(2.0, 0.0, 1e-24, self.CONFIG) == pytest.approx(10.0)

    def test_huge_error_shrinks_by_min(self):
        assert _new_step_size(2.0, 1.0, 1e-24, self.CONFIG) == pytest.approx(0.4)

    def test_error_at_tolerance(self):
        assert _new_step_size(2.0, 1e-24, 1e-24, self.CONFIG) == pytest.approx(1.8)

    def test_sign_preserved(self):
        assert _new_step_size(-2.0, 1.0, 1e-24, self.CONFIG) == pytest.approx(-0.4)


class TestIntegrateSpan:

    CONFIG = IntegrationConfig()

    def test_zero_mass_stays_zero(self):
        model = AccelerationModel(None, (), relative_masses(), radii_au(SolarConstants.AU_KM),
                                  relativity=False)
        result = integrate_span(JD0, JD0 + 2.0, ELEM, np.zeros(6), model, self.CONFIG)
        np.testing.assert_array_equal(result.delta, np.zeros(6))
        assert (result.accepted_steps, result.rejected_steps) == (1, 0)

    def test_forward(self):
        model = ConstantAcceleration([1e-8, 0.0, 0.0])
        result = integrate_span(JD0, JD0 + 10.0, ELEM, np.zeros(6), model, self.CONFIG)
        assert result.delta[0] == pytest.approx(0.5e-8 * 100.0, rel=1e-12)
        assert result.delta[3] == pytest.approx(1e-7, rel=1e-12)

    def test_backward(self):
        model = ConstantAcceleration([1e-8, 0.0, 0.0])
        result = integrate_span(JD0 + 10.0, JD0, ELEM, np.zeros(6), model, self.CONFIG)
        assert result.delta[0] == pytest.approx(0.5e-8 * 100.0, rel=1e-12)
        assert result.delta[3] == pytest.approx(-1e-7, rel=1e-12)

    def test_rejections_then_convergence(self):
        delta0 = np.array([1e-3, 0.0, 0.0, 0.0, 0.0, 0.0])
        result = integrate_span(JD0, JD0 + 10.0, ELEM, delta0, Oscillator(), self.CONFIG)
        assert result.rejected_steps >= 1
        assert result.accepted_steps > 10
        assert result.delta[0] == pytest.approx(1e-3 * math.cos(10.0), abs=1e-9)
        assert result.delta[3] == pytest.approx(-1e-3 * math.sin(10.0), abs=1e-9)

    def test_empty_span(self):
        result = integrate_span(JD0, JD0, ELEM, np.ones(6), NotANumber(), self.CONFIG)
        np.testing.assert_array_equal(result.delta, np.ones(6))
        assert result.accepted_steps == 0

    def test_underflow_raises(self):
        with pytest.raises(RuntimeError, match="underflow"):
            integrate_span(JD0, JD0 + 2.0, ELEM, np.zeros(6), NotANumber(), self.CONFIG)
