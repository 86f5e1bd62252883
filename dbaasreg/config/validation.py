"""
Checks the loaded library config against the rules in config_validation.yaml
"""

# Standard
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

# First Party
import aconfig
import alog

# Local
from .. import constants
from ..utils import nested_get, parse_time_delta

log = alog.use_channel("CONFG")

# Nested config sections that hold a min_delay/max_delay backoff pair
DELAY_RANGE_KEYS = ["type_gate", "default_requeue"]


## Public ######################################################################


def get_invalid_params(
    config: aconfig.Config,
    validation_config: aconfig.Config,
) -> List[str]:
    """Get the dotted keys of every config value that breaks its rule

    Args:
        config:  aconfig.Config
            The parsed config with any override values
        validation_config:  aconfig.Config
            The parallel config holding one rule per parameter

    Returns:
        invalid_params:  List[str]
            The keys that failed validation, in rule order
    """
    invalid_params = []
    for rule in collect_rules(validation_config):
        value = nested_get(config, rule.key)
        if not rule.validate(value):
            log.warning("Found invalid config value [%s=%s]", rule.key, value)
            invalid_params.append(rule.key)
    return invalid_params


def get_invalid_delay_ranges(config: aconfig.Config) -> List[str]:
    """Get the backoff sections whose min_delay is larger than their
    max_delay. Unparsable durations are left to get_invalid_params.
    """
    invalid_ranges = []
    for key in DELAY_RANGE_KEYS:
        section = config.get(key) or {}
        min_delay = parse_time_delta(str(section.get("min_delay", "")))
        max_delay = parse_time_delta(str(section.get("max_delay", "")))
        if min_delay is not None and max_delay is not None and min_delay > max_delay:
            log.warning(
                "Found invalid delay range [%s]: %s > %s", key, min_delay, max_delay
            )
            invalid_ranges.append(key)
    return invalid_ranges


@dataclass
class ParameterRule:
    """The rule for a single config value: its type name from the validation
    file, whether it may be null, and the type specific options (min, max,
    min_len, max_len, values)
    """

    key: str
    type_name: str
    optional: bool = False
    options: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        assert self.type_name in TYPE_CHECKS, f"Unknown rule type {self.type_name}"
        if self.type_name == "enum":
            assert self.options.get("values"), f"Enum rule {self.key} has no values"

    def validate(self, value: Any) -> bool:
        if value is None:
            return self.optional

        valid_types, check = TYPE_CHECKS[self.type_name]

        # bool is an int subclass but never passes as a number
        if isinstance(value, bool) and bool not in valid_types:
            return False
        if not isinstance(value, valid_types):
            return False
        return check(value, self.options)


def collect_rules(
    validation_config: aconfig.Config,
    prefix_parts: Optional[List[str]] = None,
) -> List[ParameterRule]:
    """Walk the validation config and build a rule for every section with a
    known "type". Sections without one are nesting levels.
    """
    rules = []
    prefix_parts = prefix_parts or []
    for key, val in validation_config.items():
        if not isinstance(val, dict):
            continue
        key_parts = prefix_parts + [key]
        nested_key = constants.NESTED_DICT_DELIM.join(key_parts)

        type_name = val.get("type")
        if isinstance(type_name, str) and type_name in TYPE_CHECKS:
            options = {k: v for k, v in val.items() if k not in ("type", "optional")}
            log.debug3("Rule for [%s]: %s %s", nested_key, type_name, options)
            rules.append(
                ParameterRule(
                    key=nested_key,
                    type_name=type_name,
                    optional=bool(val.get("optional", False)),
                    options=options,
                )
            )
        else:
            rules.extend(collect_rules(val, prefix_parts=key_parts))
    return rules


## Type checks #################################################################


def _in_range(value, options) -> bool:
    low, high = options.get("min"), options.get("max")
    return (low is None or value >= low) and (high is None or value <= high)


def _len_in_range(value, options) -> bool:
    low, high = options.get("min_len"), options.get("max_len")
    return (low is None or len(value) >= low) and (high is None or len(value) <= high)


TYPE_CHECKS: Dict[str, Tuple[Tuple[type, ...], Callable[[Any, dict], bool]]] = {
    "number": ((int, float), _in_range),
    "int": ((int,), _in_range),
    "str": ((str,), _len_in_range),
    "duration": ((str,), lambda value, _: parse_time_delta(value) is not None),
    "bool": ((bool,), lambda *_: True),
    "enum": ((str, int), lambda value, options: value in options["values"]),
}
