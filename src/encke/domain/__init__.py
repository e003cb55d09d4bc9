# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""
Pure numerical core: orbital mechanics, perturbers, the RKF45 integrator
and the catalog record model. Imports only stdlib, numpy and encke.
"""
