# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""Shared fixtures: synthetic SOF catalogs and integration contexts."""

import math

import numpy as np
import pytest

from encke.domain.config import IntegrationConfig
from encke.domain.integration import IntegrationContext
from encke.domain.orbital_mechanics import derive_elements
from encke.domain.sof import SOF_HEADER, format_elements, parse_header

EPOCH_JD = 2460400.5          # 2024-03-31 0h TT
TARGET_JD = EPOCH_JD + 20.0

# Te wide enough for two decimals of a day
WIDE_TE_HEADER = SOF_HEADER.replace("Te      |", "Te      .  |")


@pytest.fixture
def header():
    return parse_header(SOF_HEADER)


def _put(line: str, header, name: str, text: str) -> str:
    fld = header.field(name)
    value = text.ljust(fld.width) if name == "Name" else text.rjust(fld.width)
    return line[:fld.start] + value[:fld.width] + line[fld.start + fld.width:]


def build_line(
    header,
    name,
    elements,
    rms="0.45",
    n_o="1234",
    tlast="20240301",
    h="15.20",
    g="0.15",
):
    """A catalog line laid out for ``header``: elements plus identity fields."""
    line = " " * header.record_length
    for field, text in (
        ("Name", name), ("rms", rms), ("n_o", n_o),
        ("Tlast", tlast), ("H", h), ("G", g),
    ):
        line = _put(line, header, field, text)
    return format_elements(header, line, elements)


@pytest.fixture
def make_line(header):
    """Build a catalog line for the default header."""

    def _make(name, elements, **fields):
        return build_line(header, name, elements, **fields)

    return _make


def main_belt_elements(k: int, epoch: float = EPOCH_JD):
    """A family of distinct, well-behaved main-belt orbits."""
    return derive_elements(
        q=1.9 + 0.1 * k,
        ecc=0.05 + 0.01 * k,
        incl=math.radians(2.0 + k),
        arg_per=math.radians(10.0 + 20.0 * k),
        asc_node=math.radians(30.0 + 15.0 * k),
        perih_time=epoch - 50.0 - 37.0 * k,
        epoch=epoch,
    )


@pytest.fixture
def catalog_lines(make_line):
    """Eight main-belt records sharing one epoch."""
    return [
        make_line(f"{1000 + k}", main_belt_elements(k), h=f"{14.0 + 0.1 * k:5.2f}")
        for k in range(8)
    ]


@pytest.fixture
def write_catalog(tmp_path):
    """Write header + lines to a file under tmp_path; returns the path."""

    def _write(lines, name="input.sof", header_line=SOF_HEADER):
        path = tmp_path / name
        path.write_text(header_line + "\n" + "".join(line + "\n" for line in lines),
                        encoding="latin-1")
        return str(path)

    return _write


@pytest.fixture
def zero_mass_context():
    """No perturbers and no relativity: the two-body baseline is exact."""
    return IntegrationContext(config=IntegrationConfig(relativity=False))


class StaticEphemeris:
    """EphemerisSource stub with fixed perturber positions."""

    lumps_moon_into_earth = False

    def __init__(self, positions: dict[int, np.ndarray]):
        self._positions = {k: np.asarray(v, dtype=np.float64) for k, v in positions.items()}
        self.supported = frozenset(self._positions)
        self.default_enabled = frozenset(self._positions)
        self.calls = 0

    def position(self, index, jd):
        self.calls += 1
        return self._positions[index].copy()


@pytest.fixture
def static_ephemeris():
    return StaticEphemeris
