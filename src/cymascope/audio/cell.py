"""
Shared frequency value between the audio polling loop and the render loop.
"""

import threading
from typing import Tuple


class FrequencyCell:
    """
    Single-writer / single-reader frequency value.

    The audio loop writes, the render loop reads. Every write bumps a
    version counter so the reader can tell whether anything new arrived.
    """

    def __init__(self, frequency: float):
        self._lock = threading.Lock()
        self._frequency = float(frequency)
        self._version = 0

    def set(self, frequency: float):
        with self._lock:
            self._frequency = float(frequency)
            self._version += 1

    def get(self) -> float:
        with self._lock:
            return self._frequency

    def read(self) -> Tuple[float, int]:
        """Return (frequency, version) as one consistent pair."""
        with self._lock:
            return self._frequency, self._version

    @property
    def version(self) -> int:
        with self._lock:
            return self._version
