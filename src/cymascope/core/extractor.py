"""
Dominant-frequency extraction.

Picks the loudest bin of a spectrum snapshot and accepts it as the driving
frequency only when it is loud enough and inside the audible band the field
is designed for.

This is a single-bin "loudest peak" heuristic, not a pitch detector. It
follows the dominant partial, which is what the field needs, and will
mis-track chords, strong overtones and other polyphonic input.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

logger = logging.getLogger(__name__)

MIN_MAGNITUDE = 30.0
MIN_FREQUENCY = 20.0
MAX_FREQUENCY = 2000.0


@dataclass
class SpectrumSnapshot:
    """One analysis tick: N non-negative bin magnitudes and the sample rate."""

    magnitudes: np.ndarray
    sample_rate: float

    def __post_init__(self):
        self.magnitudes = np.asarray(self.magnitudes, dtype=np.float64)
        if self.magnitudes.ndim != 1:
            raise ValueError(f"magnitudes must be 1-D, got shape {self.magnitudes.shape}")
        if self.sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")

    @property
    def bin_count(self) -> int:
        return len(self.magnitudes)

    @property
    def bin_width(self) -> float:
        """Hz covered by one bin."""
        return (self.sample_rate / 2) / self.bin_count

    def bin_frequency(self, index: int) -> float:
        """Frequency in Hz at the lower edge of bin `index`."""
        return index * (self.sample_rate / 2) / self.bin_count


@dataclass(frozen=True)
class FrequencyEstimate:
    """Accepted dominant frequency and the magnitude of its peak bin."""

    hz: float
    confidence: float
    bin_index: int = 0


class FrequencyExtractor:
    """
    Converts spectrum snapshots into validated frequency estimates.
    """

    def __init__(
        self,
        min_magnitude: float = MIN_MAGNITUDE,
        min_hz: float = MIN_FREQUENCY,
        max_hz: float = MAX_FREQUENCY,
    ):
        """
        Initialize the extractor.

        Args:
            min_magnitude: Peak magnitude must be strictly above this.
            min_hz: Lowest accepted frequency (inclusive).
            max_hz: Highest accepted frequency (inclusive).
        """
        self.min_magnitude = min_magnitude
        self.min_hz = min_hz
        self.max_hz = max_hz

    def extract(
        self,
        snapshot: SpectrumSnapshot,
        sample_rate: Optional[float] = None,
    ) -> Optional[FrequencyEstimate]:
        """
        Estimate the dominant frequency of a snapshot.

        Args:
            snapshot: Spectrum to scan.
            sample_rate: Overrides the snapshot's own sample rate.

        Returns:
            FrequencyEstimate, or None when the peak is too quiet or out of band.
            The caller keeps its previous frequency in that case.
        """
        if snapshot.bin_count == 0:
            return None

        sr = snapshot.sample_rate if sample_rate is None else sample_rate
        # argmax returns the first index on ties
        peak = int(np.argmax(snapshot.magnitudes))
        magnitude = float(snapshot.magnitudes[peak])
        frequency = peak * (sr / 2) / snapshot.bin_count

        if not magnitude > self.min_magnitude:
            logger.debug("No estimate: peak magnitude %.1f at %.1f Hz too quiet", magnitude, frequency)
            return None
        if not self.min_hz <= frequency <= self.max_hz:
            logger.debug("No estimate: peak at %.1f Hz outside [%s, %s]", frequency, self.min_hz, self.max_hz)
            return None

        return FrequencyEstimate(hz=frequency, confidence=magnitude, bin_index=peak)
