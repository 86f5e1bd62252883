"""
Small helpers shared across the library
"""

# Standard
from datetime import timedelta
from typing import Any, Optional
import re

# Local
from . import constants

# Sentinel for a key that is absent, as opposed to one set to None
_ABSENT = object()


def nested_get(dct: dict, key: str, dflt=None) -> Any:
    """Read a value with 'foo.bar' notation, where each '.' steps into a
    nested dict. A missing key at any level gives dflt. A value in the middle
    of the path that is not a dict raises TypeError.
    """
    *parents, leaf = key.split(constants.NESTED_DICT_DELIM)
    node = dct
    for depth, part in enumerate(parents):
        node = node.get(part, _ABSENT)
        if node is _ABSENT:
            return dflt
        if not isinstance(node, dict):
            walked = constants.NESTED_DICT_DELIM.join(parents[: depth + 1])
            raise TypeError(f"Value at {walked} is not a dict")
    return node.get(leaf, dflt)


## Durations ###################################################################

# 1hr, 5m, 10s, 0.5s or combinations in that order such as 1hr5m0.5s
_DURATION_PATTERN = re.compile(
    r"^(?:(?P<hours>\d+)hr)?(?:(?P<minutes>\d+)m)?(?:(?P<seconds>\d*\.?\d+)s)?$"
)


def parse_time_delta(time_str: str) -> Optional[timedelta]:
    """Parse a duration like 30s, 30m, 1hr or 1hr5m0.5s. Returns None when the
    string is empty or not a duration.
    """
    match = _DURATION_PATTERN.match(time_str)
    if not match:
        return None
    units = {
        unit: float(amount) for unit, amount in match.groupdict().items() if amount
    }
    if not units:
        return None
    return timedelta(**units)
