# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""
Standard Orbit Format (SOF) catalog records.

A SOF catalog starts with a header line that lays out the columns, e.g.

    Name        |Tp      .       |Te      |q          |i  .      |...|G . ^

Each '|'-terminated header segment names one field (its leading token)
and fixes its width; records hold the value in the same columns, with a
blank where the header has its '|'. Field positions always come from the
header, never from fixed offsets.

Dates are Gregorian TT, YYYYMMDD[.dddd]; angles are degrees.
"""
import math
from dataclasses import dataclass

from encke.domain.orbital_mechanics import (
    OsculatingElements,
    derive_elements,
    normalize_angle,
)
from encke.domain.time_systems import format_catalog_date, parse_catalog_date

SOF_HEADER = (
    "Name        |Tp      .       |Te      |q          |"
    "i  .      |Om .      |om .      |e         |"
    "rms |n_o  |Tlast   |H .  |G . ^"
)
"""Default catalog header."""

REQUIRED_FIELDS: tuple[str, ...] = ("Name", "Tp", "q", "i", "Om", "om", "e")
ELEMENT_FIELDS: tuple[str, ...] = ("Tp", "Te", "q", "i", "Om", "om", "e")

_DATE_PREFIX = 9        # 'YYYYMMDD.'

EPOCH_TOLERANCE_DAYS = 1e-6
"""Largest accepted difference between an epoch and its Te column text."""


@dataclass(frozen=True)
class SofField:
    """One header column: value occupies line[start:start + width]."""
    name: str
    start: int
    width: int

    @property
    def span(self) -> slice:
        return slice(self.start, self.start + self.width)


@dataclass(frozen=True)
class SofHeader:
    line: str
    fields: tuple[SofField, ...]

    def field(self, name: str) -> SofField | None:
        for fld in self.fields:
            if fld.name == name:
                return fld
        return None

    def has(self, name: str) -> bool:
        return self.field(name) is not None

    def text(self, line: str, name: str) -> str:
        """Raw (unstripped) text of a field in a record; '' if absent."""
        fld = self.field(name)
        return "" if fld is None else line[fld.span]

    @property
    def record_length(self) -> int:
        return len(self.line)


def parse_header(line: str) -> SofHeader:
    """Parse a SOF header line.

    Raises:
        ValueError: If the line is not a SOF header or lacks a required
            field.
    """
    text = line.rstrip("\r\n")
    if "|" not in text or not text.endswith("^"):
        raise ValueError("Malformed catalog header: expected '|'-separated fields ending in '^'")
    fields = []
    start = 0
    for segment in text.split("|"):
        name = segment.split()[0] if segment.strip() else ""
        if len(segment) < 2 or not name or name == "^":
            raise ValueError(f"Malformed catalog header: bad field segment {segment!r}")
        fields.append(SofField(name, start, len(segment)))
        start += len(segment) + 1
    names = [fld.name for fld in fields]
    duplicates = {n for n in names if names.count(n) > 1}
    if duplicates:
        raise ValueError(f"Malformed catalog header: duplicate fields {sorted(duplicates)}")
    missing = [name for name in REQUIRED_FIELDS if name not in names]
    if missing:
        raise ValueError(f"Malformed catalog header: missing fields {missing}")
    return SofHeader(line=text, fields=tuple(fields))


@dataclass(frozen=True)
class SofRecord:
    """Parsed view of one catalog line."""
    designation: str
    elements: OsculatingElements
    rms: str
    line: str

    @property
    def is_unperturbed(self) -> bool:
        """True when the orbit has no fit RMS (an unfitted orbit)."""
        return not self.rms


def _float_field(header: SofHeader, line: str, name: str) -> float:
    raw = header.text(line, name).strip()
    if not raw:
        raise ValueError(f"Field {name} is blank")
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"Field {name} is not a number: {raw!r}") from None
    if not math.isfinite(value):
        raise ValueError(f"Field {name} is not finite: {raw!r}")
    return value


def parse_record(header: SofHeader, line: str) -> SofRecord:
    """Parse a catalog line into osculating elements.

    A blank Te means the elements osculate at Tp.

    Raises:
        ValueError: If a required field is blank or unparseable, or the
            elements are not a valid orbit.
    """
    text = line.rstrip("\r\n")
    designation = header.text(text, "Name").strip()
    if not designation:
        raise ValueError("Record has no designation")
    perih_time = parse_catalog_date(header.text(text, "Tp"))
    epoch_text = header.text(text, "Te").strip()
    epoch = parse_catalog_date(epoch_text) if epoch_text else perih_time
    elements = derive_elements(
        q=_float_field(header, text, "q"),
        ecc=_float_field(header, text, "e"),
        incl=math.radians(_float_field(header, text, "i")),
        arg_per=math.radians(_float_field(header, text, "om")),
        asc_node=math.radians(_float_field(header, text, "Om")),
        perih_time=perih_time,
        epoch=epoch,
    )
    return SofRecord(
        designation=designation,
        elements=elements,
        rms=header.text(text, "rms").strip(),
        line=text,
    )


def _fit_number(value: float, width: int, decimals: int) -> str:
    """Fixed-point text in ``width`` columns, dropping decimals as needed."""
    for places in range(decimals, -1, -1):
        text = f"{value:{width}.{places}f}"
        if len(text) <= width:
            return text
    raise ValueError(f"Value {value!r} does not fit in {width} columns")


def fit_date(jd: float, width: int) -> str:
    """Catalog date padded to ``width`` columns, with as many decimals as fit."""
    decimals = max(0, width - _DATE_PREFIX)
    for places in range(decimals, -1, -1):
        text = format_catalog_date(jd, places)
        if len(text) <= width:
            return text.ljust(width)
    raise ValueError(f"Date JD {jd!r} does not fit in {width} columns")


def epoch_column_text(header: SofHeader, jd: float) -> str:
    """Te column text for an osculation epoch, exactly as records are written.

    Raises:
        ValueError: If the header has no Te column, or the column is too
            narrow to hold ``jd`` to within EPOCH_TOLERANCE_DAYS.
    """
    fld = header.field("Te")
    if fld is None:
        raise ValueError("Catalog header has no Te column to record the new epoch")
    text = fit_date(jd, fld.width)
    if abs(parse_catalog_date(text) - jd) > EPOCH_TOLERANCE_DAYS:
        raise ValueError(
            f"Epoch JD {jd!r} cannot be written exactly in the {fld.width}-column "
            f"Te field (would be {text.strip()})"
        )
    return text


def format_elements(header: SofHeader, line: str, elements: OsculatingElements) -> str:
    """Rewrite the element columns of ``line`` with ``elements``.

    Only Tp, Te, q, i, Om, om and e change; every other byte of the record
    (designation, rms, observation data, magnitudes) is kept.

    Raises:
        ValueError: If a value cannot be written in its column.
    """
    text = line.rstrip("\r\n").ljust(header.record_length)
    values = {
        "Tp": lambda w: fit_date(elements.perih_time, w),
        "Te": lambda w: fit_date(elements.epoch, w),
        "q": lambda w: _fit_number(elements.q, w, 8),
        "i": lambda w: _fit_number(math.degrees(elements.incl), w, 6),
        "Om": lambda w: _fit_number(math.degrees(normalize_angle(elements.asc_node)), w, 6),
        "om": lambda w: _fit_number(math.degrees(normalize_angle(elements.arg_per)), w, 6),
        "e": lambda w: _fit_number(elements.ecc, w, 8),
    }
    for name in ELEMENT_FIELDS:
        fld = header.field(name)
        if fld is None:
            continue
        text = text[:fld.start] + values[name](fld.width) + text[fld.start + fld.width:]
    return text
