"""
CLI entry point for the cymatic field engine.

Usage:
    cymascope <audio_file> [options]        track an audio file, simulate the field
    cymascope --frequency 528 [options]     simulate at a fixed generator frequency
    cymascope --listen [options]            follow the live input for N frames
    python -m cymascope ...
"""

import argparse
import logging
import sys
import time
from pathlib import Path

from cymascope.config import (
    AUDIO_SOURCES,
    PRESET_FREQUENCIES,
    FieldConfig,
    load_config,
    save_config,
)
from cymascope.core.colorizer import to_hex
from cymascope.core.layout import LAYOUT_ALIASES
from cymascope.engine import CymaticEngine
from cymascope.errors import CymascopeError
from cymascope.io.exporter import TrackExporter
from cymascope.pipeline import FrequencyTrackPipeline


def _progress_bar(current: int, total: int, width: int = 35):
    """Print a progress bar to stdout."""
    pct = current / max(total, 1) * 100
    filled = int(width * current / max(total, 1))
    bar = "#" * filled + "-" * (width - filled)
    if sys.stdout.isatty():
        sys.stdout.write(f"\r[{bar}] {pct:5.1f}%  frame {current}/{total}")
        sys.stdout.flush()
        if current >= total:
            sys.stdout.write("\n")
    else:
        if current % max(1, total // 20) == 0 or current >= total:
            print(f"{pct:5.1f}%  frame {current}/{total}", flush=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cymascope",
        description="Audio-reactive cymatic particle field engine",
    )

    parser.add_argument(
        "audio",
        type=Path,
        nargs="?",
        default=None,
        help="Input audio file to track (wav, mp3, flac)",
    )
    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="Write the last simulated frame to this .npz file",
    )
    parser.add_argument(
        "--track-output",
        type=Path,
        default=None,
        help="Write the frequency track to this JSON file",
    )

    # Settings
    parser.add_argument("--config", type=Path, default=None, help="JSON settings file")
    parser.add_argument("--save-config", type=Path, default=None, help="Write the effective settings to JSON")
    parser.add_argument(
        "--frequency", type=float, default=None,
        help=f"Generator frequency in Hz (presets: {', '.join(map(str, PRESET_FREQUENCIES))})",
    )
    parser.add_argument("--sensitivity", type=float, default=None, help="Displacement multiplier [0.1, 3]")
    parser.add_argument("--glow", type=float, default=None, help="Glow intensity [0.5, 3]")
    parser.add_argument("--spread", type=float, default=None, help="Particle spread [0.5, 3]")
    parser.add_argument("-n", "--count", type=int, default=None, help="Particle count [20000, 150000]")
    parser.add_argument(
        "-s", "--style", type=str, default=None,
        choices=sorted(LAYOUT_ALIASES),
        help="Layout style",
    )
    parser.add_argument("--color1", type=str, default=None, help="First color (hex)")
    parser.add_argument("--color2", type=str, default=None, help="Second color (hex)")

    # Simulation
    parser.add_argument("-f", "--fps", type=int, default=60, help="Frames per second of audio (default: 60)")
    parser.add_argument(
        "--frames", type=int, default=None,
        help="Frames to simulate (default: whole track, or 600 without audio)",
    )
    parser.add_argument("--seed", type=int, default=None, help="Layout random seed")
    parser.add_argument("--play", action="store_true", help="Play the generator tone while simulating")

    # Live input
    parser.add_argument("--listen", action="store_true", help="Follow the live audio input")
    parser.add_argument("--device", type=str, default=None, help="Input device index or name")
    parser.add_argument("--list-devices", action="store_true", help="List audio input devices and exit")

    parser.add_argument("-v", "--verbose", action="store_true", help="Log engine activity")
    return parser


def _resolve_config(args: argparse.Namespace) -> FieldConfig:
    config = load_config(args.config) if args.config else FieldConfig()
    overrides = {
        "frequency": args.frequency,
        "sensitivity": args.sensitivity,
        "glow_intensity": args.glow,
        "particle_spread": args.spread,
        "particle_count": args.count,
        "layout_style": args.style,
        "color1": args.color1,
        "color2": args.color2,
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}
    if args.listen:
        overrides["audio_source"] = AUDIO_SOURCES[1]
        overrides["device"] = _parse_device(args.device)
    return config.with_updates(**overrides)


def _parse_device(value):
    if value is None:
        return None
    return int(value) if value.isdigit() else value


def _list_devices() -> int:
    from cymascope.audio.sources import list_input_devices

    for device in list_input_devices():
        print(f"  [{device['index']}] {device['name']} ({device['default_samplerate']:.0f} Hz)")
    return 0


def _listen(engine: CymaticEngine, frames: int, fps: int) -> int:
    if not engine.set_audio_source("microphone", engine.config.device):
        print(f"Error: {engine.last_error}", file=sys.stderr)
        return 1

    print(f"Listening for {frames} frames (Ctrl+C to stop)")
    last = None
    try:
        for i in range(frames):
            frame = engine.frame()
            if frame.frequency != last:
                print(f"  t={frame.time:6.2f}  {frame.frequency:7.1f} Hz")
                last = frame.frequency
            time.sleep(1 / fps)
    except KeyboardInterrupt:
        print("\nInterrupted")
    finally:
        engine.close()
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    if args.list_devices:
        return _list_devices()

    if args.audio is not None and not args.audio.exists():
        print(f"Error: Audio file not found: {args.audio}", file=sys.stderr)
        return 1

    try:
        config = _resolve_config(args)
    except CymascopeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.save_config:
        save_config(config, args.save_config)
        print(f"Settings written to {args.save_config}")

    print(f"Generating {config.particle_count} particles ({config.layout_style}, spread {config.particle_spread})")
    print(f"  Colors: {to_hex(config.color1)} -> {to_hex(config.color2)}")
    engine = CymaticEngine(config, seed=args.seed, audible=args.play)

    if args.listen:
        return _listen(engine, args.frames or 600, args.fps)

    # Step 1: Frequency track
    if args.audio is not None:
        print(f"Tracking audio: {args.audio}")
        t0 = time.time()
        pipeline = FrequencyTrackPipeline(target_fps=args.fps, initial_frequency=config.frequency)
        result = pipeline.process(args.audio, output_path=args.track_output)
        track = result["track"]

        print(f"  Duration: {track.duration:.1f}s")
        print(f"  Frames: {track.n_frames}")
        print(f"  Accepted estimates: {track.acceptance_rate * 100:.0f}%")
        print(f"  Tracking took {time.time() - t0:.1f}s")
        if args.track_output:
            print(f"  Track: {args.track_output}")

        frequencies = list(track.frequencies)
        if args.frames is not None:
            frequencies = frequencies[:args.frames]
    else:
        frequencies = [config.frequency] * (args.frames or 600)

    # Step 2: Simulate
    total = len(frequencies)
    if args.play and not engine.audio.start():
        print(f"Warning: {engine.last_error}", file=sys.stderr)
    print(f"\nSimulating {total} frames")
    t1 = time.time()
    frame = None
    for i, frame in enumerate(engine.run(frequencies), start=1):
        _progress_bar(i, total)
        if args.play:
            time.sleep(1 / args.fps)
    elapsed = time.time() - t1
    print(f"  Simulation took {elapsed:.1f}s ({total / max(elapsed, 0.01):.1f} fps)")

    if args.output and frame is not None:
        written = TrackExporter().export_snapshot(
            frame, args.output, config=engine.config, rest_positions=engine.arena.rest_positions
        )
        print(f"  Output: {written}")

    engine.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
