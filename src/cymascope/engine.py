"""
Cymatic field engine.

Ties the layout generator, wave field updater and audio controller
together behind the two calls a host application makes: `apply_settings`
when the user changes something and `frame` once per rendered frame.
"""

import logging
import threading
from typing import Any, Iterable, Iterator, Optional

from cymascope.audio.cell import FrequencyCell
from cymascope.audio.controller import AudioController
from cymascope.config import FieldConfig
from cymascope.core.field import FieldClock, FieldFrame, WaveFieldUpdater
from cymascope.core.layout import LayoutGenerator, ParticleArena

logger = logging.getLogger(__name__)


class CymaticEngine:
    """
    Owns the active particle arena and produces one field frame per call.

    Settings that change the particle set (count, layout style, spread)
    build a complete new arena first and then swap it in between frames.
    """

    def __init__(
        self,
        config: Optional[FieldConfig] = None,
        seed: Optional[int] = None,
        audio: Optional[AudioController] = None,
        audible: bool = False,
    ):
        self.config = config or FieldConfig()
        self.generator = LayoutGenerator(seed)
        self.updater = WaveFieldUpdater()
        self.clock = FieldClock()
        self.cell = audio.cell if audio is not None else FrequencyCell(self.config.frequency)
        self.audio = audio or AudioController(self.cell, audible=audible)

        self._frame_lock = threading.Lock()
        self._cell_version = self.cell.version
        self._arena = self._build_arena(self.config)
        self.regenerations = 0

        if self.config.audio_source != self.audio.mode:
            self.audio.select(self.config.audio_source, self.config.device)

    @property
    def arena(self) -> ParticleArena:
        return self._arena

    @property
    def last_error(self) -> Optional[str]:
        return self.audio.last_error

    def _build_arena(self, config: FieldConfig) -> ParticleArena:
        logger.info(
            "Generating %d particles (%s, spread %.2f)",
            config.particle_count, config.layout_style, config.particle_spread,
        )
        return self.generator.generate(
            config.particle_count,
            config.layout_style,
            config.particle_spread,
            config.rgb1,
            config.rgb2,
        )

    def apply_settings(self, **changes: Any) -> FieldConfig:
        """
        Replace settings between frames.

        Returns:
            The new configuration snapshot.
        """
        with self._frame_lock:
            base = self.config
        new_config = base.with_updates(**changes)
        arena = self._build_arena(new_config) if base.requires_regeneration(new_config) else None

        with self._frame_lock:
            old_arena = self._arena
            # Keep a live frequency that frame() picked up during the rebuild
            if "frequency" not in changes and self.config.frequency != base.frequency:
                new_config = new_config.with_updates(frequency=self.config.frequency)
            self.config = new_config
            if arena is not None:
                self._arena = arena
                self.regenerations += 1

        if arena is not None:
            old_arena.release()

        if "frequency" in changes:
            self.cell.set(new_config.frequency)
            self._cell_version = self.cell.version
            self.audio.set_frequency(new_config.frequency)

        if "audio_source" in changes or "device" in changes:
            self.set_audio_source(new_config.audio_source, new_config.device, start=self.audio.running)

        return self.config

    def set_audio_source(self, source: str, device=None, start: bool = True) -> bool:
        """
        Switch the audio source.

        Returns:
            False if the live source failed and the engine fell back to the
            generator. The message is available as `last_error`.
        """
        self.audio.select(source, device)
        ok = self.audio.start() if start else True

        effective = self.audio.mode
        if effective != self.config.audio_source or device != self.config.device:
            with self._frame_lock:
                self.config = self.config.with_updates(audio_source=effective, device=device)
        return ok

    def toggle_audio(self) -> bool:
        """Start or stop the current audio source. Returns the new running state."""
        running = self.audio.toggle()
        if self.audio.mode != self.config.audio_source:
            with self._frame_lock:
                self.config = self.config.with_updates(audio_source=self.audio.mode)
        return running

    def _sync_frequency(self):
        frequency, version = self.cell.read()
        if version != self._cell_version:
            self._cell_version = version
            if frequency != self.config.frequency:
                self.config = self.config.with_updates(frequency=frequency)

    def frame(self) -> FieldFrame:
        """Advance the field by one frame and rewrite the arena buffers."""
        with self._frame_lock:
            if self.audio.mode == "microphone":
                self._sync_frequency()
            time = self.clock.tick()
            return self.updater.update(self._arena, time, self.config)

    def run(self, frequencies: Iterable[float]) -> Iterator[FieldFrame]:
        """
        Render one frame per driving frequency.

        Frames share the arena buffers, so copy them to keep more than one.
        """
        for frequency in frequencies:
            if frequency != self.config.frequency:
                self.apply_settings(frequency=frequency)
            yield self.frame()

    def close(self):
        self.audio.stop()

    def __enter__(self) -> "CymaticEngine":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
