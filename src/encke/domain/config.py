# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""Run configuration for perturbed-orbit propagation."""
from dataclasses import dataclass


@dataclass(frozen=True)
class IntegrationConfig:
    """Configuration for one propagation run.

    Attributes:
        step_days: Macro-step size; also the perturber cache grid spacing.
        tolerance: Maximum accepted RKF45 step error (AU, AU/day combined).
        safety_factor: Damping applied to the step-size update (< 1).
        max_growth: Upper bound on the per-step step-size multiplier.
        min_shrink: Lower bound on the per-step step-size multiplier.
        radius_fudge: Scale applied to perturber radii before softening.
        include_unperturbed: Integrate records that carry no fit RMS.
        cache_margin_steps: Extra grid steps cached beyond each end of the span.
        relativity: Include the solar post-Newtonian term.
    """
    step_days: float = 2.0
    tolerance: float = 1e-12
    safety_factor: float = 0.9
    max_growth: float = 5.0
    min_shrink: float = 0.2
    radius_fudge: float = 1.0
    include_unperturbed: bool = False
    cache_margin_steps: int = 2
    relativity: bool = True


def check_config(config: IntegrationConfig) -> IntegrationConfig:
    """Validate a configuration, returning it unchanged.

    Raises:
        ValueError: If any field is out of range.
    """
    if not config.step_days > 0.0:
        raise ValueError(f"step_days must be positive, got {config.step_days}")
    if not config.tolerance > 0.0:
        raise ValueError(f"tolerance must be positive, got {config.tolerance}")
    if not 0.0 < config.safety_factor < 1.0:
        raise ValueError(f"safety_factor must be in (0, 1), got {config.safety_factor}")
    if not 0.0 < config.min_shrink < 1.0 < config.max_growth:
        raise ValueError(
            f"Need 0 < min_shrink < 1 < max_growth, got "
            f"{config.min_shrink}, {config.max_growth}"
        )
    if not config.radius_fudge >= 0.0:
        raise ValueError(f"radius_fudge must be non-negative, got {config.radius_fudge}")
    if config.cache_margin_steps < 0:
        raise ValueError(f"cache_margin_steps must be >= 0, got {config.cache_margin_steps}")
    return config
