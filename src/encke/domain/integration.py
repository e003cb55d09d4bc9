# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""
Orbit integration driver.

Advances one object's osculating elements from their epoch to a target
epoch with Encke's method: the span is cut into macro-steps aligned to the
perturber cache grid, the deviation from the two-body baseline is
integrated across each one, and the elements are rectified from baseline
plus deviation at every boundary, which resets the deviation to zero.

All run state lives in an explicit IntegrationContext; nothing here is
process-global.
"""
import logging
import math
from dataclasses import dataclass, field, replace

import numpy as np

from encke.domain.acceleration import AccelerationModel
from encke.domain.config import IntegrationConfig, check_config
from encke.domain.orbital_mechanics import (
    OsculatingElements,
    SolarConstants,
    elements_from_state,
    two_body_state,
)
from encke.domain.perturber_cache import AsteroidTrack, PerturberCache
from encke.domain.perturbers import perturber_for_designation, radii_au, relative_masses
from encke.domain.rkf45 import integrate_span

_log = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class IntegrationContext:
    """Everything an integration needs besides the object itself.

    A context without a cache has no active perturbers: only the solar
    two-body and relativistic terms act.
    """
    config: IntegrationConfig = field(default_factory=IntegrationConfig)
    cache: PerturberCache | None = None
    masses: np.ndarray = field(default_factory=relative_masses)
    radii: np.ndarray = field(
        default_factory=lambda: radii_au(SolarConstants.AU_KM)
    )

    @property
    def enabled(self) -> frozenset[int]:
        return self.cache.enabled if self.cache is not None else frozenset()

    def with_track(self, track: AsteroidTrack) -> "IntegrationContext":
        """Context in which ``track``'s body perturbs later objects."""
        if self.cache is None:
            raise ValueError("Cannot add an asteroid track to a context without a cache")
        return replace(self, cache=self.cache.with_track(track))

    def model_for(self, designation: str = "") -> AccelerationModel:
        """Acceleration model for one object, excluding the object itself."""
        active = self.enabled - excluded_perturbers(designation)
        return AccelerationModel(
            self.cache,
            tuple(active),
            self.masses,
            self.radii,
            relativity=self.config.relativity,
        )


def build_context(
    config: IntegrationConfig,
    ephemeris,
    jd_start: float,
    jd_end: float,
    enabled: frozenset[int] | None = None,
) -> IntegrationContext:
    """Validate ``config`` and build a context with a cache over the span.

    ``enabled`` defaults to the ephemeris source's default set.
    """
    check_config(config)
    if enabled is None:
        enabled = ephemeris.default_enabled
    cache = PerturberCache.build(
        ephemeris,
        jd_start,
        jd_end,
        config.step_days,
        frozenset(enabled),
        margin=config.cache_margin_steps,
    )
    return IntegrationContext(
        config=config,
        cache=cache,
        masses=relative_masses(ephemeris.lumps_moon_into_earth),
        radii=radii_au(SolarConstants.AU_KM) * config.radius_fudge,
    )


def excluded_perturbers(designation: str) -> frozenset[int]:
    """Perturbers that must not act on the object with this designation.

    An object never perturbs itself: a record that is one of the perturbing
    bodies (a massive asteroid, or Pluto) has that body removed from its
    own perturbation sum.
    """
    if not designation:
        return frozenset()
    body = perturber_for_designation(designation)
    return frozenset() if body is None else frozenset({body.index})


@dataclass(frozen=True)
class MacroStep:
    """One rectification interval of an integration."""
    jd_start: float
    jd_end: float
    elements: OsculatingElements    # baseline over the interval
    position: np.ndarray            # heliocentric position at jd_end


@dataclass(frozen=True)
class IntegrationResult:
    """Outcome of integrating one object."""
    elements: OsculatingElements
    steps: tuple[MacroStep, ...]
    accepted_steps: int
    rejected_steps: int


def macro_step_boundaries(
    jd_start: float,
    jd_end: float,
    step_days: float,
    grid_origin: float | None = None,
) -> list[float]:
    """Boundary times from ``jd_start`` to ``jd_end`` inclusive.

    Interior boundaries are the grid points ``grid_origin + k * step_days``
    strictly inside the span, so every interior macro-step coincides with
    a cache step. Grid points within the grid tolerance of either end are
    dropped rather than producing a sliver step.
    """
    if jd_start == jd_end:
        return [jd_start]
    origin = jd_start if grid_origin is None else grid_origin
    direction = 1.0 if jd_end > jd_start else -1.0
    lo, hi = min(jd_start, jd_end), max(jd_start, jd_end)
    k_lo = math.floor((lo - origin) / step_days)
    k_hi = math.ceil((hi - origin) / step_days)
    eps = 1e-6
    interior = [
        origin + k * step_days for k in range(k_lo, k_hi + 1)
        if lo + eps < origin + k * step_days < hi - eps
    ]
    if direction < 0.0:
        interior.reverse()
    return [jd_start, *interior, jd_end]


def integrate_orbit(
    elements: OsculatingElements,
    jd_end: float,
    context: IntegrationContext,
    designation: str = "",
) -> IntegrationResult:
    """Propagate ``elements`` from their epoch to ``jd_end``.

    Args:
        elements: Osculating elements at their own epoch.
        jd_end: Target epoch (JD, TT); either direction.
        context: Run configuration, cache and perturber set.
        designation: Catalog designation, used to exclude the object from
            its own perturbation sum.

    Returns:
        IntegrationResult with the rectified elements at ``jd_end`` and the
        per-macro-step record.

    Raises:
        RuntimeError: If the adaptive step underflows.
        ValueError: If rectification meets a degenerate state.
    """
    config = context.config
    model = context.model_for(designation)
    grid_origin = context.cache.jd0 if context.cache is not None else None
    boundaries = macro_step_boundaries(
        elements.epoch, jd_end, config.step_days, grid_origin,
    )

    steps: list[MacroStep] = []
    accepted = rejected = 0
    current = elements
    zero = np.zeros(6)
    for t0, t1 in zip(boundaries, boundaries[1:]):
        span = integrate_span(t0, t1, current, zero, model, config)
        accepted += span.accepted_steps
        rejected += span.rejected_steps
        base_pos, base_vel = two_body_state(current, t1)
        delta = span.delta
        steps.append(MacroStep(t0, t1, current, base_pos + delta[:3]))
        if not delta.any():
            # The baseline is already exact; keep the orbit bit-for-bit.
            current = current.with_epoch(t1)
        else:
            state = np.concatenate((base_pos + delta[:3], base_vel + delta[3:]))
            current = elements_from_state(state, t1, current.gm)

    if rejected:
        _log.debug(
            "%s: %d macro-steps, %d accepted, %d rejected RK steps",
            designation or "object", len(steps), accepted, rejected,
        )
    return IntegrationResult(
        elements=current,
        steps=tuple(steps),
        accepted_steps=accepted,
        rejected_steps=rejected,
    )
