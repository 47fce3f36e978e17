"""
Field colorizer.

Blends the two configured endpoint colors and scales the result by a
distance-based brightness, for single particles or whole buffers at once.
"""

from typing import Sequence, Union

import numpy as np
from PIL import ImageColor

from cymascope.errors import ConfigError

ColorLike = Union[str, Sequence[float], np.ndarray]


def parse_color(value: ColorLike) -> np.ndarray:
    """
    Convert a color setting to a float RGB triple in [0, 1].

    Args:
        value: Hex string ("#ff6b9d"), CSS color name, or an RGB sequence.
            Sequences with any component above 1 are read as 0-255 bytes.

    Returns:
        (3,) float64 array.
    """
    if isinstance(value, str):
        try:
            rgb = ImageColor.getrgb(value)
        except ValueError as e:
            raise ConfigError(f"Unrecognised color: {value!r}") from e
        return np.asarray(rgb[:3], dtype=np.float64) / 255.0

    rgb = np.asarray(value, dtype=np.float64)
    if rgb.shape != (3,) or not np.all(np.isfinite(rgb)) or np.any(rgb < 0):
        raise ConfigError(f"Unrecognised color: {value!r}")
    if np.any(rgb > 1.0):
        rgb = rgb / 255.0
    return np.clip(rgb, 0.0, 1.0)


def to_hex(rgb: ColorLike) -> str:
    """Format a color as a "#rrggbb" string."""
    channels = np.round(parse_color(rgb) * 255).astype(int)
    return "#{:02x}{:02x}{:02x}".format(*channels)


def blend(
    color1: ColorLike,
    color2: ColorLike,
    t: Union[float, np.ndarray],
    brightness: Union[float, np.ndarray] = 1.0,
) -> np.ndarray:
    """
    Linearly interpolate between two colors and scale by brightness.

    Args:
        color1: Color at t = 0.
        color2: Color at t = 1.
        t: Mix parameter, scalar or (N,) array.
        brightness: Scale factor, scalar or (N,) array.

    Returns:
        (3,) array for scalar inputs, otherwise (N, 3).
    """
    c1 = parse_color(color1)
    c2 = parse_color(color2)
    t = np.asarray(t, dtype=np.float64)
    brightness = np.asarray(brightness, dtype=np.float64)

    mixed = c1 + (c2 - c1) * t[..., np.newaxis]
    return mixed * brightness[..., np.newaxis]
