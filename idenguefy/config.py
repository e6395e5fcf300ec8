"""
Runtime settings for the Idenguefy core.

Settings come from three layers, later layers winning:

1. dataclass defaults
2. a JSON file (``--config`` / ``IDENGUEFY_CONFIG``)
3. environment variables

Environment variables
─────────────────────
  IDENGUEFY_CONFIG       path to the JSON settings file
  IDENGUEFY_CACHE_DIR    -> cache_dir
  IDENGUEFY_DATA_DIR     -> data_dir
  IDENGUEFY_THRESHOLD_M  -> proximity_threshold_m
  MAPTILER_API_KEY       -> maptiler_api_key

Usage
-----
    from idenguefy.config import load_settings
    settings = load_settings()
    print(settings.proximity_threshold_m, settings.cache_dir)
"""
from __future__ import annotations

import json
import logging
import os
import platform
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Optional

log = logging.getLogger(__name__)


def _default_base_dir() -> Path:
    """Per-user application directory (LocalAppData on Windows)."""
    if platform.system() == "Windows":
        base = os.environ.get("LOCALAPPDATA") or str(Path.home() / "AppData" / "Local")
        return Path(base) / "Idenguefy"
    return Path.home() / ".cache" / "Idenguefy"


@dataclass
class Settings:
    # Alerting
    proximity_threshold_m: int = 500
    cooldown_s: float = 60.0
    eval_interval_s: float = 10.0
    cluster_refresh_s: float = 3600.0

    # Tile fetching
    zoom: int = 15                     # MapTiler quota: do not go above 15
    tile_batch_pace_size: int = 1000
    tile_pace_delay_s: float = 1.0
    max_fetch_workers: int = 8
    http_timeout_s: float = 15.0

    # Remote sources
    maptiler_api_key: str = ""
    maptiler_style: str = "dataviz"
    nea_dataset_id: str = "d_dbfabf16158d1b0e1c420627c0819168"
    search_country: str = "sg"
    search_limit: int = 5

    # Storage
    cache_dir: Path = field(default_factory=lambda: _default_base_dir() / "Cache")
    data_dir: Path = field(default_factory=lambda: _default_base_dir() / "Data")

    def validate(self) -> None:
        """Raise ValueError for settings that cannot work."""
        if self.proximity_threshold_m <= 0:
            raise ValueError(
                f"proximity_threshold_m must be positive, got {self.proximity_threshold_m}"
            )
        if self.cooldown_s < 0:
            raise ValueError(f"cooldown_s must be >= 0, got {self.cooldown_s}")
        if self.eval_interval_s <= 0:
            raise ValueError(f"eval_interval_s must be positive, got {self.eval_interval_s}")
        if not 0 <= self.zoom <= 22:
            raise ValueError(f"zoom must be in [0, 22], got {self.zoom}")
        if self.tile_batch_pace_size <= 0:
            raise ValueError(
                f"tile_batch_pace_size must be positive, got {self.tile_batch_pace_size}"
            )
        if self.max_fetch_workers <= 0:
            raise ValueError(f"max_fetch_workers must be positive, got {self.max_fetch_workers}")
        if self.search_limit <= 0:
            raise ValueError(f"search_limit must be positive, got {self.search_limit}")


_PATH_FIELDS = {"cache_dir", "data_dir"}

_ENV_MAP = {
    "IDENGUEFY_CACHE_DIR": "cache_dir",
    "IDENGUEFY_DATA_DIR": "data_dir",
    "IDENGUEFY_THRESHOLD_M": "proximity_threshold_m",
    "MAPTILER_API_KEY": "maptiler_api_key",
}


def _coerce(name: str, value, default):
    """Convert a raw JSON/env value to the type of the field's default."""
    if name in _PATH_FIELDS:
        return Path(value).expanduser()
    try:
        if isinstance(default, bool):
            if isinstance(value, str):
                return value.strip().lower() in ("1", "true", "yes", "on")
            return bool(value)
        if isinstance(default, int):
            return int(value)
        if isinstance(default, float):
            return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid value for {name}: {value!r}") from exc
    return str(value)


def load_settings(
    path: Optional[Path] = None,
    environ: Optional[dict] = None,
) -> Settings:
    """Build Settings from defaults, an optional JSON file and the environment."""
    env = os.environ if environ is None else environ
    settings = Settings()
    defaults = {f.name: getattr(settings, f.name) for f in fields(Settings)}
    overrides = {}

    if path is None and env.get("IDENGUEFY_CONFIG"):
        path = Path(env["IDENGUEFY_CONFIG"])

    if path is not None:
        path = Path(path)
        with path.open("r", encoding="utf-8") as f:
            cfg = json.load(f)
        if not isinstance(cfg, dict):
            raise ValueError(f"Settings file {path} must hold a JSON object")
        for key, value in cfg.items():
            if key not in defaults:
                log.warning("Ignoring unknown setting '%s' in %s", key, path)
                continue
            overrides[key] = _coerce(key, value, defaults[key])
        log.info("Loaded %d settings from %s", len(overrides), path)

    for var, key in _ENV_MAP.items():
        if env.get(var):
            overrides[key] = _coerce(key, env[var], defaults[key])

    settings = replace(settings, **overrides)
    settings.validate()
    return settings
