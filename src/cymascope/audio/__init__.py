"""
Audio sources feeding the field's driving frequency.
"""

from cymascope.audio.cell import FrequencyCell
from cymascope.audio.controller import AudioController
from cymascope.audio.sources import AudioState, LiveAudioSource, SyntheticSource, list_input_devices
