"""Settings and parameter validation.

Defaults resolve in this order (first hit wins):

1. Explicit CLI option / form field (handled by the caller)
2. Environment: RECON_DAYS, RECON_THRESHOLD, RECON_DATE_FORMAT
3. ``[tool.recon]`` in ``pyproject.toml`` of the working directory
4. Built-in defaults below

Example ``pyproject.toml``::

    [tool.recon]
    days = 60
    threshold = "1000.00"
    date_format = "%m/%d/%Y"
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Mapping


DEFAULT_DAYS = 7
DEFAULT_THRESHOLD = Decimal("1000.00")
# Month/day/year, day and month may be unpadded ("1/2/2024").
DEFAULT_DATE_FORMAT = "%m/%d/%Y"

DAYS_ENV = "RECON_DAYS"
THRESHOLD_ENV = "RECON_THRESHOLD"
DATE_FORMAT_ENV = "RECON_DATE_FORMAT"

_ENV_KEYS = {
    "days": DAYS_ENV,
    "threshold": THRESHOLD_ENV,
    "date_format": DATE_FORMAT_ENV,
}


class ParameterError(ValueError):
    """Raised when a reconciliation parameter is malformed or out of range."""


@dataclass(frozen=True)
class Settings:
    days: int = DEFAULT_DAYS
    threshold: Decimal = DEFAULT_THRESHOLD
    date_format: str = DEFAULT_DATE_FORMAT


def parse_days(value: Any) -> int:
    """Parse the date-window size. Must be a non-negative whole number."""
    if isinstance(value, bool):
        raise ParameterError(f"Invalid days value: {value!r}")
    if isinstance(value, int):
        days = value
    else:
        try:
            days = int(str(value).strip())
        except ValueError:
            raise ParameterError(f"Invalid days value: {value!r}") from None
    if days < 0:
        raise ParameterError(f"Invalid days value: {days} (must be >= 0)")
    return days


def parse_threshold(value: Any) -> Decimal:
    """Parse the aggregate tolerance. Must be a finite, non-negative decimal."""
    if isinstance(value, bool):
        raise ParameterError(f"Invalid threshold value: {value!r}")
    if isinstance(value, Decimal):
        threshold = value
    else:
        try:
            threshold = Decimal(str(value).strip())
        except InvalidOperation:
            raise ParameterError(f"Invalid threshold value: {value!r}") from None
    if not threshold.is_finite():
        raise ParameterError(f"Invalid threshold value: {value!r} (must be finite)")
    if threshold < 0:
        raise ParameterError(f"Invalid threshold value: {threshold} (must be >= 0)")
    return threshold


def check_params(days: Any, threshold: Any) -> tuple[int, Decimal]:
    """Validate and normalize (days, threshold) before matching runs."""
    return parse_days(days), parse_threshold(threshold)


def _read_tool_table(root: Path) -> dict[str, Any]:
    pyproject_path = root / "pyproject.toml"
    if not pyproject_path.exists():
        return {}
    try:
        data = tomllib.loads(pyproject_path.read_text())
    except OSError as e:
        raise ParameterError(f"Failed to read {pyproject_path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ParameterError(f"Invalid TOML in {pyproject_path}: {e}") from e
    table = data.get("tool", {}).get("recon", {})
    return table if isinstance(table, dict) else {}


def load_settings(
    root: Path | None = None, environ: Mapping[str, str] | None = None
) -> Settings:
    """Resolve settings from pyproject.toml and the environment."""
    if root is None:
        root = Path.cwd()
    if environ is None:
        environ = os.environ

    values = _read_tool_table(root)
    for key, env_name in _ENV_KEYS.items():
        raw = environ.get(env_name)
        if raw:
            values[key] = raw

    return Settings(
        days=parse_days(values.get("days", DEFAULT_DAYS)),
        threshold=parse_threshold(values.get("threshold", DEFAULT_THRESHOLD)),
        date_format=str(values.get("date_format", DEFAULT_DATE_FORMAT)),
    )
