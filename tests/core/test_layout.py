"""Tests for particle layout generation."""

import numpy as np
import pytest

from cymascope.core.layout import (
    LAYOUT_ALIASES,
    TOPOLOGIES,
    LayoutGenerator,
    ParticleArena,
    max_radius,
    resolve_style,
)
from cymascope.errors import ConfigError

# float32 storage of rest positions
TOLERANCE = 1e-4


class TestStyleResolution:
    def test_aliases(self):
        assert resolve_style("organic") == "galaxy"
        assert resolve_style("geometric") == "rings"
        assert resolve_style("ethereal") == "sphere"

    def test_topology_names_pass_through(self):
        for topology in TOPOLOGIES:
            assert resolve_style(topology) == topology

    def test_unknown_style(self):
        with pytest.raises(ConfigError):
            resolve_style("spiral")


class TestGenerate:
    @pytest.mark.parametrize("style", TOPOLOGIES)
    @pytest.mark.parametrize("count", [1, 7, 1000, 20_001])
    def test_exact_count(self, style, count):
        arena = LayoutGenerator(seed=1).generate(count, style)
        assert arena.count == count
        for buf in (arena.rest_positions, arena.positions, arena.colors, arena.velocities):
            assert len(buf) == count
        assert arena.sizes.shape == (count,)

    @pytest.mark.parametrize("style", TOPOLOGIES)
    @pytest.mark.parametrize("spread", [0.5, 1.0, 3.0])
    def test_positions_finite_and_bounded(self, style, spread):
        arena = LayoutGenerator(seed=2).generate(5000, style, spread)
        assert np.all(np.isfinite(arena.rest_positions))
        norms = np.linalg.norm(arena.rest_positions.astype(np.float64), axis=1)
        assert norms.max() <= max_radius(style, spread) * (1 + TOLERANCE)

    def test_ui_names_store_topology(self):
        gen = LayoutGenerator(seed=3)
        for ui_name, topology in LAYOUT_ALIASES.items():
            assert gen.generate(10, ui_name).style == topology

    def test_initial_positions_equal_rest(self):
        arena = LayoutGenerator(seed=4).generate(100, "galaxy")
        np.testing.assert_array_equal(arena.positions, arena.rest_positions)
        assert arena.positions is not arena.rest_positions

    def test_rest_positions_read_only(self):
        arena = LayoutGenerator(seed=5).generate(10, "rings")
        with pytest.raises(ValueError):
            arena.rest_positions[0, 0] = 1.0

    def test_seed_reproducible(self):
        a = LayoutGenerator(seed=42).generate(2000, "galaxy")
        b = LayoutGenerator(seed=42).generate(2000, "galaxy")
        np.testing.assert_array_equal(a.rest_positions, b.rest_positions)
        np.testing.assert_array_equal(a.colors, b.colors)

    @pytest.mark.parametrize("count", [0, -5, 2.5, True])
    def test_invalid_count(self, count):
        with pytest.raises(ValueError):
            LayoutGenerator().generate(count, "galaxy")

    def test_unknown_style(self):
        with pytest.raises(ConfigError):
            LayoutGenerator().generate(10, "cube")


class TestRings:
    def test_eight_layers(self):
        arena = LayoutGenerator(seed=6).generate(800, "rings")
        rest = arena.rest_positions.astype(np.float64)
        planar = np.hypot(rest[:, 0], rest[:, 2])
        radii = np.unique(np.round(planar, 3))
        np.testing.assert_allclose(radii, 10 + 15 * np.arange(8), atol=1e-3)

    def test_layer_sizes(self):
        arena = LayoutGenerator(seed=6).generate(800, "rings")
        planar = np.hypot(arena.rest_positions[:, 0], arena.rest_positions[:, 2])
        _, counts = np.unique(np.round(planar, 2), return_counts=True)
        assert list(counts) == [100] * 8

    def test_vertical_jitter(self):
        arena = LayoutGenerator(seed=7).generate(4000, "rings", spread=2.0)
        assert np.abs(arena.rest_positions[:, 1]).max() <= 2.5 * 2.0 + TOLERANCE

    def test_spread_scales_radius(self):
        arena = LayoutGenerator(seed=8).generate(800, "rings", spread=2.0)
        planar = np.hypot(arena.rest_positions[:, 0], arena.rest_positions[:, 2])
        assert planar.min() == pytest.approx(20.0, abs=1e-3)
        assert planar.max() == pytest.approx(230.0, abs=1e-3)


class TestSphere:
    def test_shell_radius_range(self):
        arena = LayoutGenerator(seed=9).generate(5000, "sphere")
        norms = np.linalg.norm(arena.rest_positions.astype(np.float64), axis=1)
        assert norms.min() >= 30.0 - TOLERANCE
        assert norms.max() <= 80.0 + TOLERANCE

    def test_spiral_covers_both_poles(self):
        arena = LayoutGenerator(seed=10).generate(5000, "sphere")
        z = arena.rest_positions[:, 2]
        assert z.min() < -25.0
        assert z.max() > 25.0

    def test_first_particle_on_south_pole(self):
        arena = LayoutGenerator(seed=11).generate(100, "sphere")
        x, y, z = arena.rest_positions[0].astype(np.float64)
        # phi = acos(-1) = pi for i = 0
        assert abs(x) < 1e-3 and abs(y) < 1e-3
        assert z < -29.0


class TestGalaxy:
    def test_disk_halo_mixture(self):
        arena = LayoutGenerator(seed=12).generate(40_000, "galaxy")
        rest = arena.rest_positions.astype(np.float64)
        planar = np.hypot(rest[:, 0], rest[:, 2])
        height = np.abs(rest[:, 1])

        # Every disk particle sits inside its height envelope
        in_envelope = height <= 7.5 * np.exp(-planar * 0.008) * (1 + TOLERANCE) + TOLERANCE
        assert in_envelope.mean() >= 0.68

        # Halo particles well off the plane make up most of the other 30%
        off_plane = height > 7.5
        assert 0.18 < off_plane.mean() < 0.30

    def test_halo_shell_range(self):
        arena = LayoutGenerator(seed=13).generate(20_000, "galaxy")
        rest = arena.rest_positions.astype(np.float64)
        off_plane = np.abs(rest[:, 1]) > 7.5
        norms = np.linalg.norm(rest[off_plane], axis=1)
        assert norms.min() >= 40.0 - TOLERANCE
        assert norms.max() <= 140.0 + TOLERANCE

    def test_disk_radius_distribution(self):
        arena = LayoutGenerator(seed=14).generate(40_000, "galaxy")
        rest = arena.rest_positions.astype(np.float64)
        planar = np.hypot(rest[:, 0], rest[:, 2])
        # Beyond the halo only disk particles remain: 0.7 * P(u**0.25 * 250 > 140.5)
        expected = 0.7 * (1 - (140.5 / 250) ** 4)
        assert np.mean(planar > 140.5) == pytest.approx(expected, abs=0.02)


class TestDerivedBuffers:
    @pytest.fixture
    def arena(self) -> ParticleArena:
        return LayoutGenerator(seed=15).generate(10_000, "galaxy", 1.0, "#ff0000", "#0000ff")

    def test_sizes_range(self, arena):
        # size = u[0.3, 1.8] * (1 + brightness), brightness in [0.3, 1]
        assert arena.sizes.min() >= 0.3 * 1.3 - TOLERANCE
        assert arena.sizes.max() <= 1.8 * 2.0 + TOLERANCE

    def test_drift_velocity_range(self, arena):
        assert np.abs(arena.velocities).max() <= 0.025 + 1e-7

    def test_colors_are_blends(self, arena):
        # Red to blue: no green, channels bounded by brightness
        assert np.all(arena.colors[:, 1] == 0)
        assert arena.colors.min() >= 0
        assert arena.colors.max() <= 1.0 + 1e-6

    def test_brightness_cap_at_generation(self):
        # Far particles keep 30% brightness (cap 0.7)
        arena = LayoutGenerator(seed=16).generate(5000, "galaxy", 0.5, "#ffffff", "#ffffff")
        assert arena.colors.min() == pytest.approx(0.3, abs=1e-6)


class TestArenaRelease:
    def test_release_drops_buffers(self):
        arena = LayoutGenerator(seed=17).generate(100, "rings")
        arena.release()
        assert arena.released
        assert arena.count == 0
        assert len(arena.positions) == 0

    def test_mismatched_lengths_rejected(self):
        with pytest.raises(ValueError):
            ParticleArena(
                rest_positions=np.zeros((3, 3), dtype=np.float32),
                positions=np.zeros((2, 3), dtype=np.float32),
                colors=np.zeros((3, 3), dtype=np.float32),
                sizes=np.zeros(3, dtype=np.float32),
                velocities=np.zeros((3, 3), dtype=np.float32),
            )
