"""
Audio source selection and lifecycle.
"""

import logging
from typing import Callable, Optional, Union

from cymascope.audio.cell import FrequencyCell
from cymascope.audio.sources import AudioState, Device, LiveAudioSource, SyntheticSource
from cymascope.errors import ConfigError, DeviceAcquisitionError

logger = logging.getLogger(__name__)

MICROPHONE_REQUIRED_MESSAGE = (
    "Microphone access is required. Please allow microphone permission and try again."
)

Source = Union[SyntheticSource, LiveAudioSource]


class AudioController:
    """
    Owns the active audio source.

    Switching sources always stops the current one first. If the live
    source cannot acquire its device, the controller records a user-facing
    message and falls back to the generator.
    """

    def __init__(
        self,
        cell: FrequencyCell,
        live_factory: Optional[Callable[..., LiveAudioSource]] = None,
        synthetic_factory: Optional[Callable[..., SyntheticSource]] = None,
        audible: bool = False,
    ):
        """
        Initialize the controller.

        Args:
            cell: Shared frequency value; the generator starts at its value.
            live_factory: Builds the live source (default: LiveAudioSource).
            synthetic_factory: Builds the generator (default: SyntheticSource).
            audible: Play the generator tone while the generator runs.
        """
        self.cell = cell
        self.audible = audible
        self._live_factory = live_factory or LiveAudioSource
        self._synthetic_factory = synthetic_factory or SyntheticSource
        self.source: Source = self._synthetic_factory(frequency=cell.get(), audible=audible)
        self.last_error: Optional[str] = None

    @property
    def mode(self) -> str:
        return self.source.mode

    @property
    def state(self) -> AudioState:
        return self.source.state

    @property
    def running(self) -> bool:
        return self.source.running

    def select(self, mode: str, device: Device = None) -> str:
        """
        Stop the current source and configure a new one (not started).

        Returns:
            The selected mode.
        """
        self.source.stop()
        if mode == "generator":
            self.source = self._synthetic_factory(frequency=self.cell.get(), audible=self.audible)
        elif mode == "microphone":
            self.source = self._live_factory(self.cell, device=device)
        else:
            raise ConfigError(f"Unknown audio source {mode!r}")
        logger.debug("Selected %s source", mode)
        return mode

    def start(self) -> bool:
        """
        Start the current source.

        Returns:
            False if a live source failed and the controller fell back to the
            generator, True otherwise.
        """
        try:
            self.source.start()
        except DeviceAcquisitionError as e:
            self.last_error = MICROPHONE_REQUIRED_MESSAGE if self.mode == "microphone" else str(e)
            logger.warning("Audio device unavailable, falling back to generator: %s", e)
            self.select("generator")
            return False
        self.last_error = None
        return True

    def stop(self):
        self.source.stop()

    def toggle(self) -> bool:
        """Start the source if stopped, stop it if running. Returns the new running state."""
        if self.running:
            self.stop()
            return False
        self.start()
        return self.running

    def set_frequency(self, frequency: float):
        """Apply a user-set frequency to the generator."""
        if isinstance(self.source, SyntheticSource):
            self.source.set_frequency(frequency)
