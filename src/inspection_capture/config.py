"""Settings for the capture pipeline and the scorer."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .geo.geocode import DEFAULT_GEOCODE_URL, DEFAULT_USER_AGENT
from .geo.resolver import DEFAULT_GEOCODE_TIMEOUT, DEFAULT_POSITION_TIMEOUT
from .pipeline.context import StageTimeouts
from .render.transforms import MAX_DIMENSION
from .render.watermark import DEFAULT_BRANDING
from .scoring.components import DEFAULT_WEIGHTS, InspectionComponent, make_weight_table

ENV_PREFIX = "INSPECTION_CAPTURE_"
DEFAULT_CONFIG_PATH = Path("config") / "inspection_capture.yaml"


class ConfigError(ValueError):
    """Raised for configuration values that cannot be used."""


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return data


def _env(key: str) -> Optional[str]:
    v = os.getenv(ENV_PREFIX + key)
    return v.strip() if isinstance(v, str) and v.strip() else None


def _as_float(name: str, value: Any) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be a number, got {value!r}") from exc
    if result <= 0:
        raise ConfigError(f"{name} must be positive, got {result}")
    return result


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in {"0", "false", "no", "off"}
    return bool(value)


@dataclass(frozen=True)
class Settings:
    geocode_url: str = DEFAULT_GEOCODE_URL
    user_agent: str = DEFAULT_USER_AGENT
    geocode_enabled: bool = True
    branding: str = DEFAULT_BRANDING
    position_timeout: float = DEFAULT_POSITION_TIMEOUT
    geocode_timeout: float = DEFAULT_GEOCODE_TIMEOUT
    orienting_timeout: float = 3.0
    compositing_timeout: float = 10.0
    encoding_timeout: float = 10.0
    max_dimension: int = MAX_DIMENSION
    weights: Mapping[InspectionComponent, float] = field(default_factory=lambda: DEFAULT_WEIGHTS)

    def stage_timeouts(self) -> StageTimeouts:
        # the resolving stage covers both bounded sub-steps plus slack
        return StageTimeouts(
            orienting=self.orienting_timeout,
            resolving=self.position_timeout + self.geocode_timeout + 0.5,
            compositing=self.compositing_timeout,
            encoding=self.encoding_timeout,
        )


def load_settings(config_path: Optional[str] = None) -> Settings:
    """
    Resolution order (highest -> lowest):
      1) Explicit function argument
      2) INSPECTION_CAPTURE_CONFIG env var
      3) config/inspection_capture.yaml (optional)
    Individual fields can be overridden via env vars:
      - INSPECTION_CAPTURE_GEOCODE_URL
      - INSPECTION_CAPTURE_USER_AGENT
      - INSPECTION_CAPTURE_GEOCODE_ENABLED
      - INSPECTION_CAPTURE_BRANDING
      - INSPECTION_CAPTURE_POSITION_TIMEOUT
      - INSPECTION_CAPTURE_GEOCODE_TIMEOUT
      - INSPECTION_CAPTURE_MAX_DIMENSION
    """
    cfg_path = (
        Path(config_path)
        if config_path
        else Path(_env("CONFIG") or DEFAULT_CONFIG_PATH)
    )
    if config_path and not cfg_path.exists():
        raise ConfigError(f"Config file does not exist: {cfg_path}")
    cfg = _read_yaml(cfg_path)
    timeouts = cfg.get("timeouts") or {}
    if not isinstance(timeouts, dict):
        raise ConfigError("timeouts must be a mapping")

    defaults = Settings()
    position_timeout = _as_float(
        "position_timeout",
        _env("POSITION_TIMEOUT") or timeouts.get("position", defaults.position_timeout),
    )
    geocode_timeout = _as_float(
        "geocode_timeout",
        _env("GEOCODE_TIMEOUT") or timeouts.get("geocode", defaults.geocode_timeout),
    )
    max_dimension = int(
        _as_float("max_dimension", _env("MAX_DIMENSION") or cfg.get("max_dimension", MAX_DIMENSION))
    )
    enabled_raw = _env("GEOCODE_ENABLED")
    if enabled_raw is None:
        enabled_raw = cfg.get("geocode_enabled", True)

    return Settings(
        geocode_url=str(_env("GEOCODE_URL") or cfg.get("geocode_url") or DEFAULT_GEOCODE_URL),
        user_agent=str(_env("USER_AGENT") or cfg.get("user_agent") or DEFAULT_USER_AGENT),
        geocode_enabled=_as_bool(enabled_raw),
        branding=str(_env("BRANDING") or cfg.get("branding") or DEFAULT_BRANDING),
        position_timeout=position_timeout,
        geocode_timeout=geocode_timeout,
        orienting_timeout=_as_float(
            "orienting_timeout", timeouts.get("orienting", defaults.orienting_timeout)
        ),
        compositing_timeout=_as_float(
            "compositing_timeout", timeouts.get("compositing", defaults.compositing_timeout)
        ),
        encoding_timeout=_as_float(
            "encoding_timeout", timeouts.get("encoding", defaults.encoding_timeout)
        ),
        max_dimension=max_dimension,
        weights=_load_weights(cfg.get("weights")),
    )


def _load_weights(raw: Any) -> Mapping[InspectionComponent, float]:
    if raw is None:
        return DEFAULT_WEIGHTS
    if not isinstance(raw, dict):
        raise ConfigError("weights must be a mapping of component to weight")
    merged: Dict[InspectionComponent | str, float] = dict(DEFAULT_WEIGHTS)
    merged.update(raw)
    try:
        return make_weight_table(merged)
    except ValueError as exc:
        raise ConfigError(f"Invalid weight table: {exc}") from exc
