from __future__ import annotations

import os
from decimal import Decimal, InvalidOperation
from typing import Iterable, List

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def env_bool(name: str, *, default: bool = False) -> bool:
    """
    Read an environment variable as a boolean.

    Accepts common truthy/falsy strings; raises if the value cannot be parsed.
    """
    value = os.getenv(name)
    if value is None:
        return default
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean for {name!r}: {value!r}")


def env_list(name: str, *, default: Iterable[str] | None = None, separator: str = ",") -> List[str]:
    """Read a delimited list; a missing variable resolves to ``default``."""
    value = os.getenv(name)
    if value is None:
        return list(default or [])
    return [item.strip() for item in value.split(separator) if item.strip()]


def env_decimal(name: str, *, default: str) -> Decimal:
    """Read a money/fraction value as Decimal so rates never pass through float."""
    raw = os.getenv(name, default)
    try:
        return Decimal(raw.strip())
    except (InvalidOperation, AttributeError):
        raise ValueError(f"Invalid decimal for {name!r}: {raw!r}")


__all__ = ["env_bool", "env_list", "env_decimal"]
