"""
bazaar.config — YAML Configuration Loader
==========================================

Reads ``config.yaml`` for **infrastructure-only** settings: connection pool
sizing, per-operation timeout, and a few domain knobs (notification page
size, acceptance bonus).  The database URL itself is a secret and comes from
the ``DATABASE_URL`` environment variable (see :mod:`bazaar.database.engine`).

Usage::

    from bazaar.config import load_config

    cfg = load_config()              # reads ./config.yaml by default
    print(cfg.pool_size)             # 5
    print(cfg.operation_timeout)     # 30.0
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path

import yaml


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class BazaarConfig:
    """Immutable configuration loaded from ``config.yaml``.

    Every field has a default so a partial file only overrides what it names.
    """

    # Connection pool — bounded wait, then ResourceExhaustedError
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: float = 10.0
    pool_recycle: int = 3600

    # Whole-transaction deadline in seconds
    operation_timeout: float = 30.0

    # Domain knobs
    notification_limit: int = 50
    acceptance_bonus_points: int = 10

    # Logging
    log_level: str = "INFO"


_INT_FIELDS = {"pool_size", "max_overflow", "pool_recycle", "notification_limit",
               "acceptance_bonus_points"}
_FLOAT_FIELDS = {"pool_timeout", "operation_timeout"}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml", *, required: bool = True) -> BazaarConfig:
    """Read *path* and return a :class:`BazaarConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.
        Defaults to ``config.yaml`` in the current working directory.
    required:
        When ``False`` a missing file yields the built-in defaults.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist and *required* is true.
    ValueError
        If the file contains a key :class:`BazaarConfig` does not define.
    """
    config_path = Path(path)
    if not config_path.exists():
        if not required:
            return BazaarConfig()
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    known = {f.name for f in fields(BazaarConfig)}
    unknown = set(raw) - known
    if unknown:
        raise ValueError(f"Unknown config keys: {sorted(unknown)}")

    values: dict[str, object] = {}
    for key, value in raw.items():
        if key in _INT_FIELDS:
            values[key] = int(value)
        elif key in _FLOAT_FIELDS:
            values[key] = float(value)
        else:
            values[key] = str(value).upper() if key == "log_level" else value
    return BazaarConfig(**values)
