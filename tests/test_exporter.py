"""Tests for the TrackExporter module."""

import json

import numpy as np
import pytest

from cymascope.config import FieldConfig
from cymascope.core.field import evaluate_field
from cymascope.core.layout import LayoutGenerator
from cymascope.io.exporter import TrackExporter, load_snapshot
from cymascope.pipeline import FrequencyTrack


@pytest.fixture
def track() -> FrequencyTrack:
    """A short hand-built track."""
    return FrequencyTrack(
        times=np.arange(4) / 60,
        frequencies=np.array([432.0, 432.0, 528.0, 963.0]),
        accepted=np.array([False, False, True, True]),
        peak_magnitudes=np.array([0.0, 12.0, 180.0, 201.0]),
        fps=60,
        sample_rate=44100,
        duration=4 / 60,
    )


class TestTrackExporter:
    """Tests for track manifest serialization."""

    def test_structure(self, track):
        """Manifest should have metadata and one entry per frame."""
        manifest = TrackExporter().to_dict(track)
        assert set(manifest) == {"metadata", "frames"}
        assert len(manifest["frames"]) == 4

    def test_metadata(self, track):
        meta = TrackExporter().to_dict(track)["metadata"]
        assert meta["fps"] == 60
        assert meta["n_frames"] == 4
        assert meta["sample_rate"] == 44100
        assert meta["acceptance_rate"] == 0.5
        assert meta["schema_version"] == "1.0"

    def test_frame_fields(self, track):
        """Each frame carries the frequency and its spiral mode count."""
        frame = TrackExporter().to_dict(track)["frames"][2]
        assert frame == {
            "frame_index": 2,
            "time": round(2 / 60, 4),
            "frequency": 528.0,
            "modes": 9,
            "accepted": True,
            "peak_magnitude": 180.0,
        }

    def test_precision_parameter(self, track):
        frame = TrackExporter(precision=2).to_dict(track)["frames"][1]
        assert frame["time"] == 0.02

    def test_export_json(self, track, tmp_path):
        """Exported JSON should load back to the same manifest."""
        exporter = TrackExporter()
        path = exporter.export_json(track, tmp_path / "out" / "track.json")
        with open(path) as f:
            assert json.load(f) == exporter.to_dict(track)


class TestSnapshotExport:
    """Tests for field buffer archives."""

    @pytest.fixture
    def frame_and_rest(self):
        rest = LayoutGenerator(seed=1).generate(500, "rings").rest_positions
        return evaluate_field(rest, 0.5, FieldConfig()), rest

    def test_round_trip(self, frame_and_rest, tmp_path):
        frame, rest = frame_and_rest
        config = FieldConfig(frequency=528)
        path = TrackExporter().export_snapshot(frame, tmp_path / "frame.npz", config=config, rest_positions=rest)

        data = load_snapshot(path)
        np.testing.assert_array_equal(data["positions"], frame.positions)
        np.testing.assert_array_equal(data["colors"], frame.colors)
        np.testing.assert_array_equal(data["rest_positions"], rest)
        assert data["meta"]["count"] == 500
        assert data["meta"]["time"] == 0.5
        assert data["meta"]["config"]["frequency"] == 528.0

    def test_suffix_added(self, frame_and_rest, tmp_path):
        frame, _ = frame_and_rest
        path = TrackExporter().export_snapshot(frame, tmp_path / "frame")
        assert path.name == "frame.npz"
        assert path.exists()
        assert "rest_positions" not in load_snapshot(path)
        assert load_snapshot(path)["meta"]["config"] is None
