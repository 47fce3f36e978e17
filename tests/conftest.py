"""Pytest configuration and shared fixtures."""

import numpy as np
import pytest

from cymascope.config import FieldConfig

# Default sample rate for test audio
TEST_SR = 44100

# Frequency at the center of bin 20 of a 2048-point analysis at 44.1 kHz
BIN_CENTERED_HZ = 20 * TEST_SR / 2048


@pytest.fixture
def sample_rate() -> int:
    """Default sample rate for tests."""
    return TEST_SR


@pytest.fixture
def make_tone(sample_rate: int):
    """
    Factory for pure sine tones.

    Quiet by default so the byte-scaled analyser output stays below its
    255 ceiling and the peak bin is unambiguous.
    """

    def _make(frequency: float = BIN_CENTERED_HZ, amplitude: float = 0.05, duration: float = 1.0):
        t = np.arange(int(sample_rate * duration)) / sample_rate
        return (amplitude * np.sin(2 * np.pi * frequency * t)).astype(np.float32)

    return _make


@pytest.fixture
def silence(sample_rate: int) -> np.ndarray:
    """One second of digital silence."""
    return np.zeros(sample_rate, dtype=np.float32)


@pytest.fixture
def temp_audio_file(tmp_path, make_tone, sample_rate):
    """Create a temporary audio file holding a bin-centered tone."""
    import soundfile as sf

    audio_path = tmp_path / "tone.wav"
    sf.write(audio_path, make_tone(duration=1.0), sample_rate)
    return audio_path


@pytest.fixture
def small_config() -> FieldConfig:
    """Smallest particle count the settings allow."""
    return FieldConfig(particle_count=20_000)


class FakeStream:
    """Stands in for a sounddevice stream; records how it was driven."""

    instances = []

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.callback = kwargs.get("callback")
        self.samplerate = kwargs.get("samplerate") or TEST_SR
        self.started = False
        self.closed = False
        FakeStream.instances.append(self)

    def start(self):
        self.started = True

    def stop(self):
        self.started = False

    def close(self):
        self.closed = True

    def push(self, samples: np.ndarray):
        """Deliver a block of mono samples through the stream callback."""
        block = np.asarray(samples, dtype=np.float32).reshape(-1, 1)
        self.callback(block, len(block), None, None)


@pytest.fixture
def fake_stream():
    """Stream factory returning FakeStream instances."""
    FakeStream.instances = []
    return FakeStream


@pytest.fixture
def failing_stream():
    """Stream factory that behaves like a denied or missing device."""

    def _factory(**kwargs):
        raise OSError("Error querying device -1")

    return _factory
