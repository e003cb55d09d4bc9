# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""Julian Date conversions and catalog date strings.

Catalog dates are Gregorian TT calendar dates written as YYYYMMDD with an
optional decimal day fraction. Everything inside the integrator works in
Julian Days (TT), so this module is the only place calendar arithmetic
happens. Algorithms follow Meeus, Astronomical Algorithms, Ch. 7.
"""

import math
from datetime import datetime, timezone

J2000_JD: float = 2451545.0
"""Julian Date of J2000.0 epoch."""

DAYS_PER_JULIAN_CENTURY: float = 36525.0

_UNIX_EPOCH_JD: float = 2440587.5


def calendar_to_jd(year: int, month: int, day: float) -> float:
    """Convert a Gregorian calendar date (day may be fractional) to JD.

    Meeus Ch. 7. Day 1.0 is 0h of the first day of the month.
    """
    y = year
    m = month
    if m <= 2:
        y -= 1
        m += 12

    A = y // 100
    B = 2 - A + A // 4

    return (math.floor(365.25 * (y + 4716))
            + math.floor(30.6001 * (m + 1))
            + day + B - 1524.5)


def jd_to_calendar(jd: float) -> tuple[int, int, float]:
    """Convert JD to a Gregorian (year, month, fractional day).

    Inverse of calendar_to_jd. Meeus Ch. 7 inverse.
    """
    jd_plus = jd + 0.5
    Z = math.floor(jd_plus)
    F = jd_plus - Z

    if Z < 2299161:
        A = Z
    else:
        alpha = int((Z - 1867216.25) / 36524.25)
        A = Z + 1 + alpha - alpha // 4

    B = A + 1524
    C = int((B - 122.1) / 365.25)
    D = int(365.25 * C)
    E = int((B - D) / 30.6001)

    day = B - D - int(30.6001 * E) + F
    month = E - 1 if E < 14 else E - 13
    year = C - 4716 if month > 2 else C - 4715
    return int(year), int(month), float(day)


def datetime_to_jd(dt: datetime) -> float:
    """Convert a datetime to JD. Naive datetimes are treated as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return _UNIX_EPOCH_JD + dt.timestamp() / 86400.0


def parse_catalog_date(text: str) -> float:
    """Parse a 'YYYYMMDD[.dddd]' catalog date into JD (TT).

    Raises:
        ValueError: If the text is not an eight-digit date with an optional
            decimal day fraction.
    """
    token = text.strip()
    whole, _, frac = token.partition(".")
    if len(whole) != 8 or not whole.isdigit():
        raise ValueError(f"Bad catalog date {text!r}: expected YYYYMMDD[.dddd]")
    if frac and not frac.isdigit():
        raise ValueError(f"Bad catalog date {text!r}: bad day fraction")
    year = int(whole[:4])
    month = int(whole[4:6])
    day = int(whole[6:8])
    if not 1 <= month <= 12 or not 1 <= day <= 31:
        raise ValueError(f"Bad catalog date {text!r}: month/day out of range")
    day_fraction = float("0." + frac) if frac else 0.0
    return calendar_to_jd(year, month, day + day_fraction)


def format_catalog_date(jd: float, decimals: int = 0) -> str:
    """Format JD as 'YYYYMMDD' or 'YYYYMMDD.ddddddd' (``decimals`` places).

    The day fraction is rounded first so that a fraction rounding up to 1
    carries into the next calendar day.
    """
    scale = 10 ** decimals
    ticks = round((jd + 0.5) * scale)
    day_start = math.floor(ticks / scale) - 0.5
    year, month, day = jd_to_calendar(day_start)
    text = f"{year:04d}{month:02d}{int(round(day)):02d}"
    if decimals:
        text += f".{ticks - (day_start + 0.5) * scale:0{decimals}.0f}"
    return text


def parse_target_epoch(text: str, now: datetime | None = None) -> float:
    """Parse a target epoch given as a JD, a catalog date, or 'today[+-N]'.

    'today' is 0h TT of the current date (rounded down), optionally offset
    by a number of days.
    """
    token = text.strip()
    if token.lower().startswith("today"):
        if now is None:
            now = datetime.now(tz=timezone.utc)
        jd_today = math.floor(datetime_to_jd(now) - 0.5) + 0.5
        offset = token[5:].strip()
        return jd_today + (float(offset) if offset else 0.0)
    whole = token.partition(".")[0]
    if len(whole) == 8 and whole.isdigit():
        return parse_catalog_date(token)
    try:
        return float(token)
    except ValueError:
        raise ValueError(
            f"Unrecognized epoch {text!r}: use a JD, YYYYMMDD[.ddd] or 'today'"
        ) from None
