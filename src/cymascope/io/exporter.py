"""
Track and field serialization.

Writes frequency tracks to a JSON manifest aligned to the target FPS, and
field buffers to compressed numpy archives for external renderers.
"""

import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional, Union

import numpy as np

from cymascope.core.field import FieldFrame, mode_count

if TYPE_CHECKING:
    from cymascope.config import FieldConfig
    from cymascope.pipeline import FrequencyTrack


@dataclass
class TrackMetadata:
    """Metadata header for a frequency track manifest."""

    duration: float
    fps: int
    n_frames: int
    sample_rate: int
    acceptance_rate: float
    schema_version: str = "1.0"


class TrackExporter:
    """
    Exports frequency tracks and field snapshots.
    """

    def __init__(self, precision: int = 4):
        """
        Initialize the exporter.

        Args:
            precision: Decimal places for floating point values.
        """
        self.precision = precision

    def _round(self, value: float) -> float:
        """Round to configured precision."""
        return round(float(value), self.precision)

    def _build_frame(self, index: int, track: "FrequencyTrack") -> dict[str, Any]:
        frequency = float(track.frequencies[index])
        return {
            "frame_index": index,
            "time": self._round(track.times[index]),
            "frequency": self._round(frequency),
            "modes": mode_count(frequency),
            "accepted": bool(track.accepted[index]),
            "peak_magnitude": self._round(track.peak_magnitudes[index]),
        }

    def to_dict(self, track: "FrequencyTrack") -> dict[str, Any]:
        """Build the manifest dictionary for a track."""
        metadata = TrackMetadata(
            duration=self._round(track.duration),
            fps=track.fps,
            n_frames=track.n_frames,
            sample_rate=track.sample_rate,
            acceptance_rate=self._round(track.acceptance_rate),
        )
        return {
            "metadata": asdict(metadata),
            "frames": [self._build_frame(i, track) for i in range(track.n_frames)],
        }

    def export_json(self, track: "FrequencyTrack", output_path: Union[str, Path]) -> Path:
        """Write a track manifest to JSON."""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(track), f, indent=2)
        return output_path

    def export_snapshot(
        self,
        frame: FieldFrame,
        output_path: Union[str, Path],
        config: Optional["FieldConfig"] = None,
        rest_positions: Optional[np.ndarray] = None,
    ) -> Path:
        """
        Write one frame's buffers to a compressed .npz archive.

        Arrays: positions, colors, sizes, wave, and optionally rest_positions.
        The settings, time and frequency go in a JSON string under "meta".
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        meta = {
            "time": self._round(frame.time),
            "frequency": self._round(frame.frequency),
            "count": frame.count,
            "config": config.to_dict() if config is not None else None,
        }
        arrays = {
            "positions": frame.positions,
            "colors": frame.colors,
            "sizes": frame.sizes,
            "wave": frame.wave.astype(np.float32),
            "meta": np.array(json.dumps(meta)),
        }
        if rest_positions is not None:
            arrays["rest_positions"] = np.asarray(rest_positions, dtype=np.float32)

        np.savez_compressed(output_path, **arrays)
        return output_path if output_path.suffix == ".npz" else output_path.with_suffix(output_path.suffix + ".npz")


def load_snapshot(path: Union[str, Path]) -> dict[str, Any]:
    """Read a snapshot written by `TrackExporter.export_snapshot`."""
    with np.load(path) as data:
        result = {key: data[key] for key in data.files if key != "meta"}
        result["meta"] = json.loads(str(data["meta"]))
    return result
