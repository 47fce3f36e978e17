"""
Field configuration.

A FieldConfig is an immutable snapshot of every user-facing setting. The
render loop reads one snapshot per frame; the settings side replaces it
between frames with `with_updates`.
"""

import json
import logging
import math
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from cymascope.core.colorizer import parse_color
from cymascope.core.layout import LAYOUT_ALIASES, resolve_style
from cymascope.errors import ConfigError

logger = logging.getLogger(__name__)

# --- Setting ranges (the settings UI bounds its sliders to these) ---
FREQUENCY_RANGE = (20.0, 2000.0)
SENSITIVITY_RANGE = (0.1, 3.0)
GLOW_RANGE = (0.5, 3.0)
SPREAD_RANGE = (0.5, 3.0)
PARTICLE_COUNT_RANGE = (20_000, 150_000)

AUDIO_SOURCES = ("generator", "microphone")
PRESET_FREQUENCIES = (432, 528, 639, 963)

# Changing any of these rebuilds the whole particle arena
REGENERATING_FIELDS = ("particle_count", "layout_style", "particle_spread")

_CLAMPED: Dict[str, Tuple[float, float]] = {
    "frequency": FREQUENCY_RANGE,
    "sensitivity": SENSITIVITY_RANGE,
    "glow_intensity": GLOW_RANGE,
    "particle_spread": SPREAD_RANGE,
}


def _clamp(name: str, value: float, bounds: Tuple[float, float]) -> float:
    lo, hi = bounds
    clamped = min(max(value, lo), hi)
    if clamped != value:
        logger.debug("Clamped %s from %s to %s", name, value, clamped)
    return clamped


@dataclass(frozen=True)
class FieldConfig:
    """Snapshot of the settings driving the field."""

    frequency: float = 432.0
    sensitivity: float = 1.5
    glow_intensity: float = 1.2
    color1: str = "#ff6b9d"
    color2: str = "#c060ff"
    particle_spread: float = 1.0
    layout_style: str = "organic"  # "organic", "geometric", "ethereal"
    particle_count: int = 100_000

    # Audio selection
    audio_source: str = "generator"  # "generator", "microphone"
    device: Optional[Union[int, str]] = None

    def __post_init__(self):
        for name, bounds in _CLAMPED.items():
            try:
                value = float(getattr(self, name))
            except (TypeError, ValueError) as e:
                raise ConfigError(f"{name} must be a number, got {getattr(self, name)!r}") from e
            if not math.isfinite(value):
                raise ConfigError(f"{name} must be finite, got {value!r}")
            object.__setattr__(self, name, _clamp(name, value, bounds))

        try:
            count = int(self.particle_count)
        except (TypeError, ValueError, OverflowError) as e:
            raise ConfigError(f"particle_count must be an integer, got {self.particle_count!r}") from e
        lo, hi = PARTICLE_COUNT_RANGE
        object.__setattr__(self, "particle_count", int(_clamp("particle_count", count, (lo, hi))))

        if self.layout_style not in LAYOUT_ALIASES:
            # Accept the topology names as well, store the UI name
            canonical = resolve_style(self.layout_style)
            ui_name = {v: k for k, v in LAYOUT_ALIASES.items()}[canonical]
            object.__setattr__(self, "layout_style", ui_name)

        parse_color(self.color1)
        parse_color(self.color2)

        if self.audio_source not in AUDIO_SOURCES:
            raise ConfigError(
                f"Unknown audio source {self.audio_source!r}, expected one of {AUDIO_SOURCES}"
            )

    @property
    def rgb1(self):
        return parse_color(self.color1)

    @property
    def rgb2(self):
        return parse_color(self.color2)

    @property
    def topology(self) -> str:
        """Topology name ("galaxy", "rings", "sphere") of the layout style."""
        return resolve_style(self.layout_style)

    def with_updates(self, **changes: Any) -> "FieldConfig":
        """Return a new snapshot with the given settings replaced."""
        unknown = set(changes) - {f.name for f in fields(self)}
        if unknown:
            raise ConfigError(f"Unknown settings: {sorted(unknown)}")
        return replace(self, **changes)

    def requires_regeneration(self, other: "FieldConfig") -> bool:
        """True if moving from this snapshot to `other` needs a new particle arena."""
        return any(getattr(self, name) != getattr(other, name) for name in REGENERATING_FIELDS)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FieldConfig":
        return cls().with_updates(**data)


def load_config(path: Union[str, Path]) -> FieldConfig:
    """
    Load settings from a JSON file.

    Keys missing from the file keep their defaults.
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Malformed settings file {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read settings file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Settings file {path} must contain a JSON object")

    logger.info("Loaded settings from %s", path)
    return FieldConfig.from_dict(data)


def save_config(config: FieldConfig, path: Union[str, Path]) -> Path:
    """Write settings to a JSON file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(config.to_dict(), f, indent=2)
    return path
