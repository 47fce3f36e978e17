"""
Audio sources.

  - SyntheticSource: the generator mode. The driving frequency is whatever
    the user set; optionally a quiet sine at that frequency is played.
  - LiveAudioSource: captures an input device and runs a polling loop that
    turns the latest samples into a frequency estimate.

Both talk to PortAudio through sounddevice. The library is imported when a
stream is opened, so a machine without audio hardware can still run the
field in generator mode.
"""

import enum
import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Union

import numpy as np

from cymascope.audio.cell import FrequencyCell
from cymascope.core.analyzer import SpectrumAnalyser
from cymascope.core.extractor import FrequencyEstimate, FrequencyExtractor
from cymascope.errors import DeviceAcquisitionError

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_RATE = 44100
DEFAULT_POLL_INTERVAL = 1 / 60
TONE_GAIN = 0.05

Device = Optional[Union[int, str]]
StreamFactory = Callable[..., Any]


class AudioState(enum.Enum):
    IDLE = "idle"
    ACQUIRING = "acquiring"
    STREAMING = "streaming"


def _input_stream(**kwargs):
    import sounddevice as sd

    return sd.InputStream(**kwargs)


def _output_stream(**kwargs):
    import sounddevice as sd

    return sd.OutputStream(**kwargs)


def list_input_devices() -> List[Dict[str, Any]]:
    """Return the host's audio input devices as dicts with index, name and default rate."""
    import sounddevice as sd

    devices = []
    for index, info in enumerate(sd.query_devices()):
        if info["max_input_channels"] > 0:
            devices.append({
                "index": index,
                "name": info["name"],
                "channels": info["max_input_channels"],
                "default_samplerate": info["default_samplerate"],
            })
    return devices


def _close_stream(stream):
    try:
        stream.stop()
    finally:
        stream.close()


class SyntheticSource:
    """
    Generator mode: a constant, user-set driving frequency.
    """

    mode = "generator"

    def __init__(
        self,
        frequency: float = 432.0,
        audible: bool = False,
        gain: float = TONE_GAIN,
        sample_rate: int = DEFAULT_SAMPLE_RATE,
        stream_factory: Optional[StreamFactory] = None,
    ):
        self.frequency = float(frequency)
        self.audible = audible
        self.gain = gain
        self.sample_rate = sample_rate
        self._stream_factory = stream_factory or _output_stream
        self._stream = None
        self._phase = 0.0
        self._state = AudioState.IDLE

    @property
    def state(self) -> AudioState:
        return self._state

    @property
    def running(self) -> bool:
        return self._state is AudioState.STREAMING

    def set_frequency(self, frequency: float):
        """Retune; a playing tone keeps its phase."""
        self.frequency = float(frequency)

    def start(self):
        if self.running:
            return
        if self.audible:
            self._state = AudioState.ACQUIRING
            try:
                stream = self._stream_factory(
                    samplerate=self.sample_rate,
                    channels=1,
                    dtype="float32",
                    callback=self._on_output,
                )
                stream.start()
            except Exception as e:
                self._state = AudioState.IDLE
                raise DeviceAcquisitionError(f"Could not open audio output: {e}") from e
            self._stream = stream
        self._state = AudioState.STREAMING
        logger.info("Generator started at %.1f Hz", self.frequency)

    def stop(self):
        if self._state is AudioState.IDLE:
            return
        stream, self._stream = self._stream, None
        if stream is not None:
            _close_stream(stream)
        self._state = AudioState.IDLE
        logger.info("Generator stopped")

    def _on_output(self, outdata, frames, time_info, status):
        if status:
            logger.warning("Output stream status: %s", status)
        step = 2 * np.pi * self.frequency / self.sample_rate
        phases = self._phase + step * np.arange(frames)
        outdata[:, 0] = self.gain * np.sin(phases)
        self._phase = float((self._phase + step * frames) % (2 * np.pi))

    def render_tone(self, n_samples: int) -> np.ndarray:
        """Samples of the generator tone, starting from phase zero."""
        t = np.arange(n_samples) / self.sample_rate
        return (self.gain * np.sin(2 * np.pi * self.frequency * t)).astype(np.float32)


class LiveAudioSource:
    """
    Live input mode.

    The stream callback only copies samples into a buffer; the polling
    loop, running on its own thread, analyses the buffer, extracts an
    estimate and writes accepted frequencies into the shared cell.
    """

    mode = "microphone"

    def __init__(
        self,
        cell: FrequencyCell,
        device: Device = None,
        sample_rate: Optional[float] = None,
        analyser: Optional[SpectrumAnalyser] = None,
        extractor: Optional[FrequencyExtractor] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        stream_factory: Optional[StreamFactory] = None,
    ):
        """
        Initialize the source.

        Args:
            cell: Receives accepted frequencies.
            device: sounddevice device index or name, None for the default input.
            sample_rate: Requested rate, None for the device default.
            analyser: Spectrum analyser (default: 2048-point, smoothing 0.8).
            extractor: Frequency extractor (default thresholds).
            poll_interval: Seconds between polls.
            stream_factory: Callable returning an input stream; defaults to
                sounddevice.InputStream.
        """
        self.cell = cell
        self.device = device
        self.sample_rate = sample_rate
        self.analyser = analyser or SpectrumAnalyser()
        self.extractor = extractor or FrequencyExtractor()
        self.poll_interval = poll_interval
        self._stream_factory = stream_factory or _input_stream

        self._state = AudioState.IDLE
        self._state_lock = threading.Lock()
        self._stream = None
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

        self._buffer_lock = threading.Lock()
        self._buffer = np.zeros(self.analyser.fft_size, dtype=np.float32)
        self.samples_received = 0
        self.last_estimate: Optional[FrequencyEstimate] = None

    @property
    def state(self) -> AudioState:
        return self._state

    @property
    def running(self) -> bool:
        return self._state is AudioState.STREAMING

    def start(self):
        """
        Acquire the device and start the polling loop.

        Raises:
            DeviceAcquisitionError: The device could not provide a stream.
                The source is back in the idle state.
        """
        with self._state_lock:
            if self._state is not AudioState.IDLE:
                return
            self._state = AudioState.ACQUIRING

            try:
                stream = self._stream_factory(
                    device=self.device,
                    channels=1,
                    samplerate=self.sample_rate,
                    blocksize=0,
                    dtype="float32",
                    callback=self._on_audio,
                )
                stream.start()
            except Exception as e:
                self._state = AudioState.IDLE
                raise DeviceAcquisitionError(
                    f"Could not open audio input {self.device!r}: {e}", device=self.device
                ) from e

            self._stream = stream
            self.sample_rate = float(getattr(stream, "samplerate", None) or self.sample_rate or DEFAULT_SAMPLE_RATE)
            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._poll_loop, name="cymascope-frequency-poll", daemon=True
            )
            self._thread.start()
            self._state = AudioState.STREAMING

        logger.info("Listening on %s at %.0f Hz", self.device if self.device is not None else "default input", self.sample_rate)

    def stop(self):
        """
        Stop the polling loop and release the device.

        Returns once the loop has exited and the stream is closed. Calling it
        on a stopped source does nothing.
        """
        with self._state_lock:
            if self._state is AudioState.IDLE:
                return
            self._stop_event.set()
            thread, self._thread = self._thread, None
            if thread is not None and thread is not threading.current_thread():
                thread.join()

            stream, self._stream = self._stream, None
            try:
                if stream is not None:
                    _close_stream(stream)
            finally:
                self.analyser.reset()
                with self._buffer_lock:
                    self._buffer[:] = 0.0
                self._state = AudioState.IDLE

        logger.info("Stopped listening")

    def _on_audio(self, indata, frames, time_info, status):
        if status:
            logger.warning("Input stream status: %s", status)
        block = np.asarray(indata, dtype=np.float32)
        mono = block[:, 0] if block.ndim == 2 else block
        self.feed(mono)

    def feed(self, samples: np.ndarray):
        """Append samples to the analysis buffer, keeping the latest fft_size."""
        samples = np.asarray(samples, dtype=np.float32).ravel()
        n = len(samples)
        if n == 0:
            return
        size = len(self._buffer)
        with self._buffer_lock:
            if n >= size:
                self._buffer[:] = samples[-size:]
            else:
                self._buffer[:-n] = self._buffer[n:]
                self._buffer[-n:] = samples
            self.samples_received += n

    def poll_once(self) -> Optional[FrequencyEstimate]:
        """
        Analyse the buffered samples once.

        An accepted estimate is rounded to whole Hz and written to the cell;
        otherwise the cell keeps its previous value.
        """
        with self._buffer_lock:
            samples = self._buffer.copy()

        snapshot = self.analyser.snapshot(samples, self.sample_rate or DEFAULT_SAMPLE_RATE)
        estimate = self.extractor.extract(snapshot)
        if estimate is not None:
            self.last_estimate = estimate
            self.cell.set(round(estimate.hz))
        return estimate

    def _poll_loop(self):
        while not self._stop_event.is_set():
            self.poll_once()
            self._stop_event.wait(self.poll_interval)
