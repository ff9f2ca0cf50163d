"""
Session configuration for the Pantak HF75, loaded from YAML.

Example file::

    port: /dev/ttyUSB0
    trace: true
    override_warmup: false
    exposure:
      kv: 40
      ma: 5.5

Only ``port`` is required.  The file is read, never written.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from pathlib import Path

import yaml

from .constants import MAX_RATED_KV
from .exceptions import ConfigError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Configuration data model
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ExposureSettings:
    """Requested tube voltage (kV) and current (mA)."""

    kv: float
    ma: float

    @property
    def label(self) -> str:
        """Human-readable label, e.g. ``40.0 kV / 5.5 mA``."""
        return f"{self.kv:.1f} kV / {self.ma:.1f} mA"


@dataclass(frozen=True)
class SessionConfig:
    """Top-level configuration loaded from a YAML file."""

    port: str
    trace: bool = True
    override_warmup: bool = False
    exposure: ExposureSettings | None = None


# ---------------------------------------------------------------------------
# Config loading & validation
# ---------------------------------------------------------------------------


def load_config(path: str | Path) -> SessionConfig:
    """Load and validate a session configuration from a YAML file.

    Raises:
        FileNotFoundError: If *path* does not exist.
        ConfigError: If the config is malformed or contains invalid values.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        try:
            raw = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Cannot parse {path}: {exc}") from exc

    config = parse_config(raw)
    logger.debug("Loaded session config from %s: %s", path, config)
    return config


def parse_config(raw: object) -> SessionConfig:
    """Validate an already-parsed YAML document."""
    if not isinstance(raw, dict):
        raise ConfigError(f"Config file must be a YAML mapping, got {type(raw).__name__}")

    port = raw.get("port")
    if not isinstance(port, str) or not port:
        raise ConfigError("Config must specify a non-empty 'port' string")

    trace = _require_bool(raw, "trace", default=True)
    override_warmup = _require_bool(raw, "override_warmup", default=False)

    exposure = None
    if raw.get("exposure") is not None:
        exposure = _parse_exposure(raw["exposure"])

    return SessionConfig(
        port=port,
        trace=trace,
        override_warmup=override_warmup,
        exposure=exposure,
    )


def _parse_exposure(data: object) -> ExposureSettings:
    if not isinstance(data, dict):
        raise ConfigError("'exposure' must be a mapping with 'kv' and 'ma'")

    kv = _require_non_negative_number(data, "kv")
    ma = _require_non_negative_number(data, "ma")
    if kv > MAX_RATED_KV:
        raise ConfigError(f"exposure: 'kv' must be at most {MAX_RATED_KV}, got {kv}")
    return ExposureSettings(kv=float(kv), ma=float(ma))


def _require_bool(data: dict, key: str, default: bool) -> bool:
    val = data.get(key, default)
    if not isinstance(val, bool):
        raise ConfigError(f"'{key}' must be a boolean, got {type(val).__name__}")
    return val


def _require_non_negative_number(data: dict, key: str) -> float:
    val = data.get(key)
    # bool is an int subclass; reject it explicitly
    valid = (
        not isinstance(val, bool)
        and isinstance(val, (int, float))
        and math.isfinite(val)
        and val >= 0
    )
    if not valid:
        raise ConfigError(f"exposure: '{key}' must be a non-negative number, got {val!r}")
    return val
