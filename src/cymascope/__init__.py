"""
Cymascope - audio-reactive cymatic particle field engine.

Generates particle layouts, animates them with a frequency-driven standing
wave field and tracks the dominant frequency of live or recorded audio.
"""

from cymascope.config import FieldConfig, load_config, save_config
from cymascope.core.colorizer import blend, parse_color
from cymascope.core.extractor import FrequencyEstimate, FrequencyExtractor, SpectrumSnapshot
from cymascope.core.field import FieldClock, FieldFrame, WaveFieldUpdater, evaluate_field
from cymascope.core.layout import LayoutGenerator, ParticleArena
from cymascope.engine import CymaticEngine
from cymascope.errors import ConfigError, CymascopeError, DeviceAcquisitionError
from cymascope.pipeline import FrequencyTrack, FrequencyTrackPipeline

__version__ = "0.1.0"
