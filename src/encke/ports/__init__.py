# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""
Port interfaces.

Adapters implement these to supply perturber positions from different
ephemeris backends.
"""
from encke.ports.ephemeris import EphemerisSource

__all__ = ["EphemerisSource"]
