"""
Particle layout generation.

Builds the rest positions of every particle for one of three topologies,
along with the initial color, size and drift velocity buffers:

  - rings  ("geometric") - 8 concentric circular layers
  - sphere ("ethereal")  - nested shells on a Fibonacci spiral
  - galaxy ("organic")   - logarithmic-spiral disk plus a diffuse halo
"""

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from cymascope.core.colorizer import ColorLike, blend
from cymascope.errors import ConfigError

# UI style name -> topology
LAYOUT_ALIASES = {
    "organic": "galaxy",
    "geometric": "rings",
    "ethereal": "sphere",
}
TOPOLOGIES = ("galaxy", "rings", "sphere")

# Brightness falloff reference radius and cap at generation time.
# The wave update uses a cap of 0.6 instead.
FALLOFF_RADIUS = 250.0
GENERATION_BRIGHTNESS_CAP = 0.7

RING_LAYERS = 8
RING_BASE_RADIUS = 10.0
RING_LAYER_STEP = 15.0
RING_JITTER = 5.0  # full width, i.e. +-2.5

SPHERE_RADIUS = (30.0, 80.0)

DISK_FRACTION = 0.7
DISK_RADIUS = 250.0
DISK_RADIUS_EXPONENT = 0.25
DISK_TWIST = 0.03
DISK_THICKNESS = 15.0
DISK_HEIGHT_FALLOFF = 0.008
HALO_RADIUS = (40.0, 140.0)

DRIFT_SPEED = 0.05  # full width, i.e. +-0.025 per axis


def resolve_style(style: str) -> str:
    """Map a UI style name or topology name to its topology."""
    if style in TOPOLOGIES:
        return style
    try:
        return LAYOUT_ALIASES[style]
    except KeyError:
        raise ConfigError(
            f"Unknown layout style {style!r}, expected one of "
            f"{sorted(LAYOUT_ALIASES)} or {list(TOPOLOGIES)}"
        ) from None


def max_radius(style: str, spread: float = 1.0) -> float:
    """Largest distance from the origin a rest position of `style` can have."""
    topology = resolve_style(style)
    if topology == "rings":
        outer = RING_BASE_RADIUS + (RING_LAYERS - 1) * RING_LAYER_STEP
        return math.hypot(outer, RING_JITTER / 2) * spread
    if topology == "sphere":
        return SPHERE_RADIUS[1] * spread
    return math.hypot(DISK_RADIUS, DISK_THICKNESS / 2) * spread


@dataclass(eq=False)
class ParticleArena:
    """
    Parallel per-particle buffers for one particle set.

    A particle is an index into these arrays. `rest_positions` is read-only;
    the other buffers are rewritten in place every frame.
    """

    rest_positions: np.ndarray  # (N, 3)
    positions: np.ndarray       # (N, 3)
    colors: np.ndarray          # (N, 3)
    sizes: np.ndarray           # (N,)
    velocities: np.ndarray      # (N, 3)
    style: str = "galaxy"
    spread: float = 1.0
    released: bool = False

    def __post_init__(self):
        n = len(self.rest_positions)
        for name in ("positions", "colors", "sizes", "velocities"):
            if len(getattr(self, name)) != n:
                raise ValueError(f"{name} has {len(getattr(self, name))} entries, expected {n}")
        self.rest_positions.setflags(write=False)

    @property
    def count(self) -> int:
        return len(self.rest_positions)

    def release(self):
        """Drop the buffers once the arena has been replaced."""
        empty3 = np.zeros((0, 3), dtype=np.float32)
        self.rest_positions = empty3
        self.positions = empty3
        self.colors = empty3
        self.sizes = np.zeros(0, dtype=np.float32)
        self.velocities = empty3
        self.released = True


class LayoutGenerator:
    """
    Procedural generator of particle rest layouts.

    All randomness comes from a single numpy Generator so a seeded
    generator reproduces the same layout.
    """

    def __init__(self, seed: Optional[int] = None):
        self.rng = np.random.default_rng(seed)

    def generate(
        self,
        count: int,
        style: str = "organic",
        spread: float = 1.0,
        color1: ColorLike = "#ff6b9d",
        color2: ColorLike = "#c060ff",
    ) -> ParticleArena:
        """
        Generate a full particle set.

        Args:
            count: Number of particles (positive integer).
            style: Topology or UI style name.
            spread: Global scale of all radii.
            color1: First blend endpoint.
            color2: Second blend endpoint.

        Returns:
            ParticleArena with `count` particles.
        """
        if isinstance(count, bool) or not isinstance(count, (int, np.integer)) or count <= 0:
            raise ValueError(f"count must be a positive integer, got {count!r}")
        count = int(count)
        topology = resolve_style(style)

        if topology == "rings":
            rest = self._rings(count, spread)
        elif topology == "sphere":
            rest = self._sphere(count, spread)
        else:
            rest = self._galaxy(count, spread)

        dist = np.linalg.norm(rest, axis=1)
        brightness = 1.0 - np.minimum(dist / (FALLOFF_RADIUS * spread), GENERATION_BRIGHTNESS_CAP)

        colors = blend(color1, color2, self.rng.random(count), brightness)
        sizes = (self.rng.random(count) * 1.5 + 0.3) * (1.0 + brightness)
        velocities = (self.rng.random((count, 3)) - 0.5) * DRIFT_SPEED

        rest = rest.astype(np.float32)
        return ParticleArena(
            rest_positions=rest,
            positions=rest.copy(),
            colors=colors.astype(np.float32),
            sizes=sizes.astype(np.float32),
            velocities=velocities.astype(np.float32),
            style=topology,
            spread=float(spread),
        )

    def _rings(self, count: int, spread: float) -> np.ndarray:
        """Concentric circular layers with a little vertical jitter."""
        i = np.arange(count, dtype=np.float64)
        per_layer = count / RING_LAYERS
        layer = np.floor(i / per_layer)
        angle = np.mod(i, per_layer) / per_layer * 2 * np.pi
        radius = (RING_BASE_RADIUS + layer * RING_LAYER_STEP) * spread

        x = np.cos(angle) * radius
        y = (self.rng.random(count) - 0.5) * RING_JITTER * spread
        z = np.sin(angle) * radius
        return np.column_stack((x, y, z))

    def _sphere(self, count: int, spread: float) -> np.ndarray:
        """Equal-area spiral over shells of random radius."""
        i = np.arange(count, dtype=np.float64)
        phi = np.arccos(-1.0 + (2.0 * i) / count)
        theta = np.sqrt(count * np.pi) * phi
        lo, hi = SPHERE_RADIUS
        radius = (lo + self.rng.random(count) * (hi - lo)) * spread
        return _spherical(radius, theta, phi)

    def _galaxy(self, count: int, spread: float) -> np.ndarray:
        """Spiral disk (70%) mixed with a spherical halo (30%)."""
        rest = np.empty((count, 3), dtype=np.float64)
        in_disk = self.rng.random(count) < DISK_FRACTION
        n_disk = int(np.count_nonzero(in_disk))
        n_halo = count - n_disk

        # Disk: radius biased toward the center, arms twist with radius
        base_angle = self.rng.random(n_disk) * 2 * np.pi
        radius = self.rng.random(n_disk) ** DISK_RADIUS_EXPONENT * DISK_RADIUS * spread
        spiral = base_angle + radius * DISK_TWIST
        falloff = np.exp(-radius * DISK_HEIGHT_FALLOFF)
        height = (self.rng.random(n_disk) - 0.5) * DISK_THICKNESS * falloff * spread
        rest[in_disk] = np.column_stack((np.cos(spiral) * radius, height, np.sin(spiral) * radius))

        # Halo: uniform direction on a random shell
        phi = np.arccos(-1.0 + 2.0 * self.rng.random(n_halo))
        theta = self.rng.random(n_halo) * 2 * np.pi
        lo, hi = HALO_RADIUS
        shell = (lo + self.rng.random(n_halo) * (hi - lo)) * spread
        rest[~in_disk] = _spherical(shell, theta, phi)

        return rest


def _spherical(radius: np.ndarray, theta: np.ndarray, phi: np.ndarray) -> np.ndarray:
    return np.column_stack((
        radius * np.cos(theta) * np.sin(phi),
        radius * np.sin(theta) * np.sin(phi),
        radius * np.cos(phi),
    ))
