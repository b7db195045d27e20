"""Conversions between Composer Control API values and user units.

Controller positions on the wire are integers in [0, 65535]. Faders map that
range to [-72, 12] dB and meters to [-48, 24] dBu by default.

Note: SymNet hardware rounds some tenth-of-a-dB values, e.g. setting -47.2 dB
reads back as -47.0 dB while -47.9 dB is kept.
"""
from __future__ import annotations

import math

API_MIN = 0
API_MAX = 65535

FADER_MIN_DB = -72
FADER_MAX_DB = 12

METER_MIN_DB = -48
METER_MAX_DB = 24

OFF_VALUE = API_MIN
ON_VALUE = API_MAX


def _round_half_up(value: float) -> int:
    # Ties round towards +inf; round() would send them to the even neighbour
    return math.floor(value + 0.5)


def generic_map(value: float, in_min: float, in_max: float, out_min: float, out_max: float) -> float:
    """Linearly map value from [in_min, in_max] to [out_min, out_max]."""
    return out_min + (value - in_min) * (out_max - out_min) / (in_max - in_min)


def api_to_db(value: float, min_db: float = FADER_MIN_DB, max_db: float = FADER_MAX_DB) -> float:
    """Map an API value to dB, rounded to 0.1 dB."""
    return _round_half_up(generic_map(value, API_MIN, API_MAX, min_db, max_db) * 10) / 10


def db_to_api(value: float, min_db: float = FADER_MIN_DB, max_db: float = FADER_MAX_DB,
              relative: bool = False) -> int:
    """Map a dB value to an API value.

    With relative=True the value is a change in dB and maps onto [-65535, 65535],
    suitable for SymNetClient.control_change.
    """
    if relative:
        return _round_half_up(generic_map(value, min_db - max_db, max_db - min_db, -API_MAX, API_MAX))
    return _round_half_up(generic_map(value, min_db, max_db, API_MIN, API_MAX))


def pct_to_api(value: float) -> int:
    """Map a percentage to an API value.

    Non-positive values are treated as relative and use the full [-100, 100] span.
    """
    if value > 0:
        return _round_half_up(generic_map(value, 0, 100, API_MIN, API_MAX))
    return _round_half_up(generic_map(value, -100, 100, -API_MAX, API_MAX))


def api_to_meter(value: float) -> float:
    return api_to_db(value, METER_MIN_DB, METER_MAX_DB)


def api_to_fader(value: float) -> float:
    return api_to_db(value)


def fader_to_api(value: float, relative: bool = False) -> int:
    return db_to_api(value, relative=relative)


def selector_to_api(selected: int, count: int) -> int:
    """Map a selector position in [1, count] to an API value."""
    return _round_half_up(generic_map(selected, 1, count, API_MIN, API_MAX))


def api_to_selector(value: int, count: int) -> int:
    """Map an API value to a selector position in [1, count]."""
    return _round_half_up(generic_map(value, API_MIN, API_MAX, 1, count))


def is_on(value: int) -> bool:
    return value == ON_VALUE


def is_off(value: int) -> bool:
    return value == OFF_VALUE
