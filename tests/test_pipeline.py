"""Tests for offline frequency tracking."""

import json

import numpy as np
import pytest

from cymascope.core.extractor import FrequencyExtractor
from cymascope.pipeline import FrequencyTrack, FrequencyTrackPipeline


class TestTrack:
    def test_frame_count(self, make_tone, sample_rate):
        track = FrequencyTrackPipeline(target_fps=60).track(make_tone(duration=1.0), sample_rate)
        assert isinstance(track, FrequencyTrack)
        assert track.n_frames == 60
        assert track.duration == pytest.approx(1.0)
        np.testing.assert_allclose(track.times[:3], [0.0, 1 / 60, 2 / 60])

    def test_short_signal_gets_one_frame(self, make_tone, sample_rate):
        track = FrequencyTrackPipeline().track(make_tone(duration=0.001), sample_rate)
        assert track.n_frames == 1

    def test_follows_steady_tone(self, make_tone, sample_rate):
        track = FrequencyTrackPipeline(target_fps=60).track(make_tone(), sample_rate)
        # First window is all padding
        assert not track.accepted[0]
        assert track.frequencies[0] == 432.0
        assert track.frequencies[-1] == 431.0
        assert track.acceptance_rate > 0.9

    def test_holds_frequency_on_silence(self, silence, sample_rate):
        track = FrequencyTrackPipeline(initial_frequency=528).track(silence, sample_rate)
        assert np.all(track.frequencies == 528.0)
        assert track.acceptance_rate == 0.0

    def test_holds_frequency_out_of_band(self, make_tone, sample_rate):
        track = FrequencyTrackPipeline().track(make_tone(3000.0), sample_rate)
        assert np.all(track.frequencies == 432.0)

    def test_holds_last_estimate_after_tone_ends(self, make_tone, silence, sample_rate):
        signal = np.concatenate([make_tone(duration=0.5), silence])
        track = FrequencyTrackPipeline(smoothing=0.0).track(signal, sample_rate)
        last_accepted = np.flatnonzero(track.accepted)[-1]
        assert not track.accepted[-1]
        assert np.all(track.frequencies[last_accepted:] == track.frequencies[last_accepted])

    def test_custom_extractor(self, make_tone, sample_rate):
        # Threshold above anything a quiet tone reaches
        pipeline = FrequencyTrackPipeline(extractor=FrequencyExtractor(min_magnitude=254))
        track = pipeline.track(make_tone(), sample_rate)
        assert np.all(track.frequencies == 432.0)


class TestProcess:
    def test_process_file(self, temp_audio_file):
        result = FrequencyTrackPipeline(target_fps=30).process(temp_audio_file)
        assert result["n_frames"] == 30
        assert result["fps"] == 30
        assert result["duration"] == pytest.approx(1.0)
        assert len(result["manifest"]["frames"]) == 30
        assert "output_path" not in result

    def test_process_writes_json(self, temp_audio_file, tmp_path):
        output = tmp_path / "track.json"
        result = FrequencyTrackPipeline(target_fps=30).process(temp_audio_file, output_path=output)
        assert result["output_path"] == str(output)
        with open(output) as f:
            manifest = json.load(f)
        assert manifest["metadata"]["fps"] == 30
        assert manifest["frames"][-1]["frequency"] == 431.0
        assert manifest["frames"][-1]["modes"] == 8
