# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""
Encke

Propagate osculating orbital elements of minor-planet catalogs to a new
epoch with Encke's method: RKF45 integration of the deviation from a
two-body reference orbit, perturbations by the planets, the Moon, Pluto
and the massive asteroids, a solar relativistic term, a shared perturber
position cache, incremental reuse of unchanged records, and striped
multi-process execution with a deterministic merge.
"""

from encke.domain.config import IntegrationConfig
from encke.domain.orbital_mechanics import (
    OsculatingElements,
    SolarConstants,
    derive_elements,
    elements_from_state,
    two_body_state,
)
from encke.domain.integration import (
    IntegrationContext,
    IntegrationResult,
    build_context,
    integrate_orbit,
)
from encke.domain.planetary_ephemeris import AnalyticEphemeris
from encke.adapters.parallel import RunSummary, propagate_catalog

__version__ = "1.0.0"

__all__ = [
    "AnalyticEphemeris",
    "IntegrationConfig",
    "IntegrationContext",
    "IntegrationResult",
    "OsculatingElements",
    "RunSummary",
    "SolarConstants",
    "build_context",
    "derive_elements",
    "elements_from_state",
    "integrate_orbit",
    "propagate_catalog",
    "two_body_state",
]
