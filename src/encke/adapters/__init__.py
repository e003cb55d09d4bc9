# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""
Adapters for catalog files, binary ephemerides and process-parallel runs.

External dependencies (jplephem, concurrent.futures, file I/O) are
confined to this layer.
"""
