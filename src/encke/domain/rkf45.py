# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""
Runge-Kutta-Fehlberg 4(5) integration of the Encke deviation.

Two layers:
    - rkf45_step: one embedded step, six derivative evaluations, returning
      the fifth-order update and the fifth-minus-fourth error vector.
      No retry logic.
    - integrate_span: the error-controlled loop. Accepts a step when the
      summed squared error is below tolerance², rescales the trial step
      by safety·(tol²/err²)^(1/5) either way, and clamps the step so it
      lands exactly on the span end.

Coefficients from Danby, Fundamentals of Celestial Mechanics, 2nd ed.,
pp. 297-299.
"""
from dataclasses import dataclass

import numpy as np

from encke.domain.acceleration import AccelerationModel
from encke.domain.config import IntegrationConfig
from encke.domain.orbital_mechanics import OsculatingElements

# Stage abscissae, as fractions of the step.
STAGE_FRACTIONS: tuple[float, ...] = (0.0, 2.0 / 9.0, 1.0 / 3.0, 3.0 / 4.0, 1.0, 5.0 / 6.0)

_A: tuple[tuple[float, ...], ...] = (
    (),
    (2.0 / 9.0,),
    (1.0 / 12.0, 1.0 / 4.0),
    (69.0 / 128.0, -243.0 / 128.0, 135.0 / 64.0),
    (-17.0 / 12.0, 27.0 / 4.0, -27.0 / 5.0, 16.0 / 15.0),
    (65.0 / 432.0, -5.0 / 16.0, 13.0 / 16.0, 4.0 / 27.0, 5.0 / 144.0),
)

# Fifth-order weights
_B5: tuple[float, ...] = (47.0 / 450.0, 0.0, 12.0 / 25.0, 32.0 / 225.0, 1.0 / 30.0, 6.0 / 25.0)

# Fifth minus fourth order weights
_E: tuple[float, ...] = (-1.0 / 150.0, 0.0, 3.0 / 100.0, -16.0 / 75.0, -1.0 / 20.0, 6.0 / 25.0)


@dataclass(frozen=True)
class SpanResult:
    """Deviation at the end of an error-controlled span."""
    delta: np.ndarray
    accepted_steps: int
    rejected_steps: int


def rkf45_step(
    jd: float,
    elements: OsculatingElements,
    delta: np.ndarray,
    h: float,
    model: AccelerationModel,
    with_error: bool = True,
) -> tuple[np.ndarray, np.ndarray | None]:
    """One RKF45 step of the deviation from ``jd`` to ``jd + h``.

    Perturber positions come from the cache when (jd, h) sits on its grid,
    otherwise the acceleration model evaluates them directly.

    Returns:
        (new deviation, error vector or None).
    """
    stage_positions = model.stage_positions(jd, h)
    k: list[np.ndarray] = []
    for s in range(6):
        y = delta
        if s:
            y = delta + h * sum(a * kj for a, kj in zip(_A[s], k))
        k.append(model.derivatives(
            jd + STAGE_FRACTIONS[s] * h,
            elements,
            y,
            None if stage_positions is None else stage_positions[s],
        ))
    new_delta = delta + h * sum(b * kj for b, kj in zip(_B5, k) if b)
    if not with_error:
        return new_delta, None
    err = h * sum(e * kj for e, kj in zip(_E, k) if e)
    return new_delta, err


def _new_step_size(h: float, err_sq: float, tol_sq: float, config: IntegrationConfig) -> float:
    """Rescale the trial step by the inverse fifth root of the error ratio."""
    if err_sq == 0.0:
        return h * config.max_growth
    factor = config.safety_factor * (tol_sq / err_sq) ** 0.2
    return h * min(config.max_growth, max(config.min_shrink, factor))


def integrate_span(
    jd_start: float,
    jd_end: float,
    elements: OsculatingElements,
    delta: np.ndarray,
    model: AccelerationModel,
    config: IntegrationConfig,
) -> SpanResult:
    """Integrate the deviation from ``jd_start`` to exactly ``jd_end``.

    The first trial step is the whole span, so a span on the cache grid
    is usually covered by one cached step.

    Raises:
        RuntimeError: If the trial step underflows (t + h == t).
    """
    t = jd_start
    y = np.array(delta, dtype=np.float64)
    h = jd_end - jd_start
    tol_sq = config.tolerance * config.tolerance
    accepted = rejected = 0

    while t != jd_end:
        if t + h == t:
            raise RuntimeError(
                f"Step size underflow at JD {t!r} (h={h!r}) integrating to {jd_end!r}"
            )
        new_y, err = rkf45_step(t, elements, y, h, model)
        err_sq = float(np.dot(err, err))
        if err_sq < tol_sq:
            y = new_y
            if abs(h) >= abs(jd_end - t):
                t = jd_end
            else:
                t += h
            accepted += 1
        else:
            rejected += 1
        h = _new_step_size(h, err_sq, tol_sq, config)
        remaining = jd_end - t
        if abs(h) > abs(remaining):
            h = remaining

    return SpanResult(delta=y, accepted_steps=accepted, rejected_steps=rejected)
