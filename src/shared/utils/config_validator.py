"""
Environment-backed configuration checks.

Every reader raises ``ConfigurationError`` with a message naming the variable,
so entry points can report a bad setting and exit instead of failing later
in the middle of a batch.
"""

import os
from typing import Callable, Optional, TypeVar

N = TypeVar("N", int, float)

_TRUE_VALUES = ("true", "yes", "1")
_FALSE_VALUES = ("false", "no", "0")


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""


def require_env(name: str, description: Optional[str] = None) -> str:
    """
    Return a non-empty environment variable.

    Args:
        name: Environment variable name
        description: What the variable holds, included in the error message

    Raises:
        ConfigurationError: If the variable is unset or empty
    """
    value = os.getenv(name)
    if value:
        return value

    what = f" ({description})" if description else ""
    raise ConfigurationError(
        f"Missing required environment variable: {name}{what}. "
        f"Set it in the environment or a .env file."
    )


def get_env_or_default(name: str, default: str) -> str:
    """Return the variable's value, or ``default`` when unset or blank."""
    value = os.getenv(name)
    return value.strip() if value and value.strip() else default


def _validate_number(
    name: str,
    parse: Callable[[str], N],
    kind: str,
    default: Optional[N],
    min_value: Optional[N],
    max_value: Optional[N],
) -> N:
    raw = os.getenv(name)
    if not raw:
        if default is None:
            raise ConfigurationError(f"Missing required {kind} environment variable: {name}")
        return default

    try:
        value = parse(raw.strip())
    except ValueError:
        raise ConfigurationError(f"Invalid {kind} value for {name}: '{raw}'")

    if min_value is not None and value < min_value:
        raise ConfigurationError(f"{name}={value} is below the minimum of {min_value}")
    if max_value is not None and value > max_value:
        raise ConfigurationError(f"{name}={value} exceeds the maximum of {max_value}")
    return value


def validate_int_env(
    name: str,
    default: Optional[int] = None,
    min_value: Optional[int] = None,
    max_value: Optional[int] = None,
) -> int:
    """
    Read an integer variable (counts, batch sizes).

    Raises:
        ConfigurationError: If the value is missing without a default,
            not an integer, or out of range
    """
    return _validate_number(name, int, "integer", default, min_value, max_value)


def validate_float_env(
    name: str,
    default: Optional[float] = None,
    min_value: Optional[float] = None,
    max_value: Optional[float] = None,
) -> float:
    """Read a numeric variable, typically a duration in seconds."""
    return _validate_number(name, float, "numeric", default, min_value, max_value)


def validate_bool_env(name: str, default: bool = False) -> bool:
    """
    Read a boolean flag.

    Accepts true/false, yes/no and 1/0, case-insensitive.

    Raises:
        ConfigurationError: For any other value
    """
    raw = os.getenv(name)
    if not raw:
        return default

    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigurationError(
        f"Invalid boolean value for {name}: '{raw}'. "
        f"Expected one of: {', '.join(_TRUE_VALUES + _FALSE_VALUES)}"
    )
