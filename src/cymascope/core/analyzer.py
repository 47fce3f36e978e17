"""
Spectrum analysis of live or file audio.

Produces byte-scaled magnitude spectra the same way a browser
AnalyserNode does, so a fixed magnitude threshold means the same thing
whatever the input level calibration:

  1. Blackman window over the latest `fft_size` samples
  2. Magnitude |X[k]| / N for the first N/2 bins
  3. Exponential smoothing with the previous block
  4. Conversion to dB, with [min_db, max_db] mapped onto [0, 255]
"""

import numpy as np
from scipy import signal as scipy_signal

from cymascope.core.extractor import SpectrumSnapshot

DEFAULT_FFT_SIZE = 2048
DEFAULT_SMOOTHING = 0.8
DEFAULT_MIN_DB = -100.0
DEFAULT_MAX_DB = -30.0


class SpectrumAnalyser:
    """
    Stateful spectrum analyser.

    Smoothing carries over from one call to the next, so a single instance
    should see consecutive blocks from one stream.
    """

    def __init__(
        self,
        fft_size: int = DEFAULT_FFT_SIZE,
        smoothing: float = DEFAULT_SMOOTHING,
        min_db: float = DEFAULT_MIN_DB,
        max_db: float = DEFAULT_MAX_DB,
    ):
        """
        Initialize the analyser.

        Args:
            fft_size: Window length in samples (power of two).
            smoothing: Weight of the previous spectrum, in [0, 1).
            min_db: Level mapped to byte 0.
            max_db: Level mapped to byte 255.
        """
        if fft_size < 32 or fft_size & (fft_size - 1):
            raise ValueError(f"fft_size must be a power of two >= 32, got {fft_size}")
        if not 0.0 <= smoothing < 1.0:
            raise ValueError(f"smoothing must be in [0, 1), got {smoothing}")
        if min_db >= max_db:
            raise ValueError("min_db must be below max_db")

        self.fft_size = fft_size
        self.smoothing = smoothing
        self.min_db = min_db
        self.max_db = max_db

        self._window = scipy_signal.get_window("blackman", fft_size).astype(np.float64)
        self._previous = np.zeros(self.bin_count, dtype=np.float64)

    @property
    def bin_count(self) -> int:
        return self.fft_size // 2

    def reset(self):
        """Forget the smoothing history."""
        self._previous = np.zeros(self.bin_count, dtype=np.float64)

    def magnitudes(self, samples: np.ndarray) -> np.ndarray:
        """
        Smoothed linear magnitudes of the latest `fft_size` samples.

        Shorter input is zero-padded at the front.
        """
        block = np.asarray(samples, dtype=np.float64).ravel()[-self.fft_size:]
        if len(block) < self.fft_size:
            block = np.pad(block, (self.fft_size - len(block), 0))

        spectrum = np.fft.rfft(block * self._window)[: self.bin_count]
        current = np.abs(spectrum) / self.fft_size

        smoothed = self.smoothing * self._previous + (1.0 - self.smoothing) * current
        self._previous = smoothed
        return smoothed

    def to_bytes(self, magnitudes: np.ndarray) -> np.ndarray:
        """Map linear magnitudes onto the 0-255 byte scale."""
        with np.errstate(divide="ignore"):
            db = 20.0 * np.log10(magnitudes)
        scaled = (255.0 / (self.max_db - self.min_db)) * (db - self.min_db)
        return np.clip(np.floor(scaled), 0, 255).astype(np.uint8)

    def snapshot(self, samples: np.ndarray, sample_rate: float) -> SpectrumSnapshot:
        """Analyse one block and return its byte-scaled snapshot."""
        return SpectrumSnapshot(self.to_bytes(self.magnitudes(samples)), sample_rate)
