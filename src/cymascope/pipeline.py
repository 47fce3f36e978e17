"""
Offline frequency tracking.

Runs the same analyser -> extractor chain as the live input over an audio
file, one analysis per output frame, and produces the driving-frequency
track a recorded performance would have produced.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union

import librosa
import numpy as np

from cymascope.core.analyzer import DEFAULT_FFT_SIZE, DEFAULT_SMOOTHING, SpectrumAnalyser
from cymascope.core.extractor import FrequencyExtractor
from cymascope.io.exporter import TrackExporter

logger = logging.getLogger(__name__)


@dataclass
class FrequencyTrack:
    """Driving frequency per frame, with the raw estimate outcome."""

    times: np.ndarray        # (n_frames,) seconds
    frequencies: np.ndarray  # (n_frames,) Hz actually driving the field
    accepted: np.ndarray     # (n_frames,) bool, True where a new estimate was accepted
    peak_magnitudes: np.ndarray  # (n_frames,) loudest bin value
    fps: int
    sample_rate: int
    duration: float

    @property
    def n_frames(self) -> int:
        return len(self.frequencies)

    @property
    def acceptance_rate(self) -> float:
        return float(np.mean(self.accepted)) if self.n_frames else 0.0


class FrequencyTrackPipeline:
    """
    Audio file to frequency track.

    Frames without an accepted estimate hold the previous frequency, the
    same way the live source leaves the shared value untouched.
    """

    def __init__(
        self,
        target_fps: int = 60,
        sample_rate: Optional[int] = None,
        fft_size: int = DEFAULT_FFT_SIZE,
        smoothing: float = DEFAULT_SMOOTHING,
        initial_frequency: float = 432.0,
        extractor: Optional[FrequencyExtractor] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            target_fps: Analyses per second of audio.
            sample_rate: Resample to this rate on load (None keeps the file's rate).
            fft_size: Analyser window length.
            smoothing: Analyser smoothing constant.
            initial_frequency: Frequency held until the first accepted estimate.
            extractor: Frequency extractor (default thresholds).
        """
        self.target_fps = target_fps or 60
        self.sample_rate = sample_rate
        self.fft_size = fft_size
        self.smoothing = smoothing
        self.initial_frequency = initial_frequency
        self.extractor = extractor or FrequencyExtractor()
        self.exporter = TrackExporter()

    def load(self, audio_path: Union[str, Path]) -> tuple[np.ndarray, int]:
        """Load an audio file as mono float samples."""
        y, sr = librosa.load(audio_path, sr=self.sample_rate, mono=True)
        return y, int(sr)

    def track(self, y: np.ndarray, sr: int) -> FrequencyTrack:
        """
        Track the dominant frequency of a signal.

        Frame k analyses the `fft_size` samples that end at time k / fps.
        """
        y = np.asarray(y, dtype=np.float32)
        duration = len(y) / sr
        n_frames = max(1, int(len(y) * self.target_fps // sr))
        hop = sr / self.target_fps

        analyser = SpectrumAnalyser(fft_size=self.fft_size, smoothing=self.smoothing)
        padded = np.concatenate([np.zeros(self.fft_size, dtype=np.float32), y])

        times = np.arange(n_frames) / self.target_fps
        frequencies = np.empty(n_frames, dtype=np.float64)
        accepted = np.zeros(n_frames, dtype=bool)
        peaks = np.zeros(n_frames, dtype=np.float64)

        current = float(self.initial_frequency)
        for k in range(n_frames):
            end = int(round(k * hop))
            snapshot = analyser.snapshot(padded[end:end + self.fft_size], sr)
            peaks[k] = snapshot.magnitudes.max()

            estimate = self.extractor.extract(snapshot)
            if estimate is not None:
                current = float(round(estimate.hz))
                accepted[k] = True
            frequencies[k] = current

        logger.info(
            "Tracked %d frames, %.0f%% with an accepted estimate",
            n_frames, 100.0 * float(np.mean(accepted)),
        )
        return FrequencyTrack(
            times=times,
            frequencies=frequencies,
            accepted=accepted,
            peak_magnitudes=peaks,
            fps=self.target_fps,
            sample_rate=sr,
            duration=duration,
        )

    def process(
        self,
        audio_path: Union[str, Path],
        output_path: Union[str, Path, None] = None,
    ) -> dict[str, Any]:
        """
        Run the complete pipeline from audio file to frequency track.

        Args:
            audio_path: Path to input audio file.
            output_path: Path for a JSON track. If None, only returns the dict.

        Returns:
            Dictionary with the track, its manifest dict and processing info.
        """
        audio_path = Path(audio_path)
        y, sr = self.load(audio_path)
        track = self.track(y, sr)

        result = {
            "track": track,
            "manifest": self.exporter.to_dict(track),
            "duration": track.duration,
            "n_frames": track.n_frames,
            "fps": self.target_fps,
        }

        if output_path:
            written = self.exporter.export_json(track, output_path)
            result["output_path"] = str(written)

        return result
