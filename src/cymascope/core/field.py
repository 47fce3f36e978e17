"""
Wave field update.

Turns a driving frequency and a time value into a scalar wave per particle
and derives each particle's displaced position, color and size from it.

The wave is the product of three terms (radial ripple, angular spiral with
a frequency-dependent number of lobes, and a global pulse), so wherever any
factor is close to zero the field is quiet. Those quiet bands are the nodal
lines of the pattern.

Nothing here draws random numbers: identical inputs give identical buffers.
"""

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from cymascope.core.colorizer import blend
from cymascope.core.layout import FALLOFF_RADIUS, ParticleArena

if TYPE_CHECKING:
    from cymascope.config import FieldConfig

# Frequency normalisation and mode quantisation
FREQUENCY_SCALE = 400.0
MODES_PER_UNIT = 6
BASE_MODES = 2

# Wave shape
WAVE_SPEED = 1.5
RADIAL_WAVENUMBER = 0.08
SPIRAL_WAVENUMBER = 0.03
SPIRAL_LAG = 0.8
PULSE_RATE = 0.5
PULSE_FLOOR = 0.7
PULSE_DEPTH = 0.3

DISPLACEMENT_GAIN = 12.0
NORMAL_EPSILON = 0.001
UPDATE_BRIGHTNESS_CAP = 0.6

# Time advanced per rendered frame
TIME_STEP = 0.01


def mode_count(frequency: float) -> int:
    """Rotational symmetry order of the spiral term at `frequency`."""
    return int(math.floor(frequency / FREQUENCY_SCALE * MODES_PER_UNIT)) + BASE_MODES


def compute_wave(rest_positions: np.ndarray, time: float, frequency: float) -> np.ndarray:
    """
    Evaluate the combined wave value in [-1, 1] for every rest position.

    Args:
        rest_positions: (N, 3) array.
        time: Elapsed field time.
        frequency: Driving frequency in Hz.

    Returns:
        (N,) float64 array.
    """
    rest = np.asarray(rest_positions, dtype=np.float64)
    x, y, z = rest[:, 0], rest[:, 1], rest[:, 2]

    dist = np.sqrt(x * x + y * y + z * z)
    angle_xz = np.arctan2(z, x)

    freq_norm = frequency / FREQUENCY_SCALE
    modes = mode_count(frequency)
    wave_speed = time * freq_norm * WAVE_SPEED

    radial = np.sin(dist * RADIAL_WAVENUMBER - wave_speed)
    spiral = np.cos(angle_xz * modes + dist * SPIRAL_WAVENUMBER - wave_speed * SPIRAL_LAG)
    pulse = math.sin(wave_speed * PULSE_RATE)

    return radial * spiral * (PULSE_FLOOR + pulse * PULSE_DEPTH)


@dataclass
class FieldFrame:
    """Buffers produced for one rendered frame."""

    positions: np.ndarray  # (N, 3)
    colors: np.ndarray     # (N, 3)
    sizes: np.ndarray      # (N,)
    wave: np.ndarray       # (N,) combined wave value
    time: float = 0.0
    frequency: float = 0.0

    @property
    def count(self) -> int:
        return len(self.positions)


def evaluate_field(rest_positions: np.ndarray, time: float, config: "FieldConfig") -> FieldFrame:
    """
    Compute displaced positions, colors and sizes for a set of rest positions.

    Displacement is purely radial: each particle moves along the unit vector
    from the origin through its rest position.
    """
    rest = np.asarray(rest_positions, dtype=np.float64)
    combined = compute_wave(rest, time, config.frequency)

    dist = np.linalg.norm(rest, axis=1)
    displacement = combined * config.sensitivity * DISPLACEMENT_GAIN
    normals = rest / (dist + NORMAL_EPSILON)[:, np.newaxis]
    positions = rest + normals * displacement[:, np.newaxis]

    brightness = 1.0 - np.minimum(dist / (FALLOFF_RADIUS * config.particle_spread), UPDATE_BRIGHTNESS_CAP)
    colors = blend(config.rgb1, config.rgb2, (combined + 1.0) * 0.5, brightness) * config.glow_intensity

    size_variation = 0.8 + np.abs(combined) * 0.6
    sizes = size_variation * brightness * (1.5 + config.glow_intensity * 0.3)

    return FieldFrame(
        positions=positions.astype(np.float32),
        colors=colors.astype(np.float32),
        sizes=sizes.astype(np.float32),
        wave=combined,
        time=time,
        frequency=config.frequency,
    )


class WaveFieldUpdater:
    """
    Per-frame writer of a particle arena's position, color and size buffers.
    """

    def update(self, arena: ParticleArena, time: float, config: "FieldConfig") -> FieldFrame:
        """
        Rewrite the arena's buffers in place for `time`.

        Returns:
            FieldFrame whose buffers are the arena's own arrays.
        """
        if arena.released:
            raise RuntimeError("Cannot update a released particle arena")

        frame = evaluate_field(arena.rest_positions, time, config)
        arena.positions[...] = frame.positions
        arena.colors[...] = frame.colors
        arena.sizes[...] = frame.sizes

        frame.positions = arena.positions
        frame.colors = arena.colors
        frame.sizes = arena.sizes
        return frame


class FieldClock:
    """Monotonic field time, advanced by a fixed step per rendered frame."""

    def __init__(self, step: float = TIME_STEP, start: float = 0.0):
        if step <= 0:
            raise ValueError("step must be positive")
        self.step = step
        self.time = start
        self.ticks = 0

    def tick(self) -> float:
        """Advance one frame and return the new time."""
        self.ticks += 1
        self.time += self.step
        return self.time

    def reset(self, start: float = 0.0):
        self.time = start
        self.ticks = 0
