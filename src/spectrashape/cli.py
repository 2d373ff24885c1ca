"""
Command-line interface for offline spectrum shaping.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from spectrashape.core.config import ShapingConfig
from spectrashape.io.presets import PresetError, PresetStore, read_preset_file
from spectrashape.pipeline import ReplayPipeline


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="spectrashape",
        description="Render shaped spectrum textures from an audio file",
    )

    parser.add_argument(
        "input",
        type=Path,
        nargs="?",
        help="Input audio file (wav, mp3, flac)",
    )

    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="Output manifest path (default: <input>_textures.json)",
    )

    parser.add_argument(
        "-f", "--fps",
        type=int,
        default=60,
        help="Frames per second (default: 60)",
    )

    parser.add_argument(
        "-w", "--width",
        type=int,
        default=512,
        help="Display bins per texture (default: 512)",
    )

    parser.add_argument(
        "-s", "--sample-rate",
        type=int,
        default=48000,
        help="Decode sample rate (default: 48000)",
    )

    parser.add_argument(
        "--format",
        choices=["json", "numpy"],
        default="json",
        help="Output format (default: json)",
    )

    parser.add_argument(
        "-p", "--preset",
        default=None,
        help="Preset name (built-in, library or user)",
    )

    parser.add_argument(
        "--preset-file",
        type=Path,
        default=None,
        help="Preset JSON document (overrides --preset)",
    )

    parser.add_argument(
        "--library",
        type=Path,
        default=None,
        help="Preset library directory containing index.json",
    )

    parser.add_argument(
        "--set",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Override a single shaping parameter, e.g. --set kickBoostDb=12",
    )

    parser.add_argument(
        "--byte-input",
        action="store_true",
        help="Feed byte magnitudes instead of float dB",
    )

    parser.add_argument(
        "--no-cache",
        action="store_true",
        help="Ignore and do not reuse cached manifests",
    )

    parser.add_argument(
        "--list-presets",
        action="store_true",
        help="List available presets and exit",
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress progress output",
    )

    parser.add_argument(
        "--summary",
        action="store_true",
        help="Print manifest summary to stdout",
    )

    return parser


def parse_overrides(pairs: list[str]) -> dict:
    """Turn ``KEY=VALUE`` strings into a controls map (values parsed as JSON when possible)."""
    overrides = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Expected KEY=VALUE, got {pair!r}")
        try:
            overrides[key.strip()] = json.loads(value)
        except ValueError:
            overrides[key.strip()] = value.strip()
    return overrides


def resolve_config(args, store: PresetStore) -> ShapingConfig:
    if args.preset_file:
        _, controls = read_preset_file(args.preset_file)
        config = ShapingConfig.from_dict(controls)
    elif args.preset:
        config = store.load(args.preset)
        if config is None:
            raise PresetError(f"Preset not found: {args.preset!r}")
    else:
        config = ShapingConfig()
    if args.set:
        config = config.patch_dict(parse_overrides(args.set))
    return config


def main(argv: list[str] | None = None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.ERROR if args.quiet else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    store = PresetStore(library_dir=args.library)

    if args.list_presets:
        for name in store.names():
            print(name)
        return 0

    if args.input is None:
        parser.error("the following arguments are required: input")

    if not args.input.exists():
        print(f"Error: Input file not found: {args.input}", file=sys.stderr)
        return 1

    try:
        config = resolve_config(args, store)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    output_path = args.output
    if output_path is None:
        suffix = ".npz" if args.format == "numpy" else ".json"
        output_path = args.input.with_name(f"{args.input.stem}_textures{suffix}")

    pipeline = ReplayPipeline(
        target_fps=args.fps,
        sample_rate=args.sample_rate,
        width=args.width,
        config=config,
        byte_input=args.byte_input,
    )

    if not args.quiet:
        print(f"Processing: {args.input}")
        print(f"Mode: {config.weighting_mode.value}, width: {args.width}, fps: {args.fps}")

    result = pipeline.process(
        args.input,
        output_path=output_path,
        format=args.format,
        use_cache=not args.no_cache,
    )

    if not args.quiet:
        print(f"BPM: {result['bpm']:.1f}")
        print(f"Duration: {result['duration']:.2f}s")
        print(f"Frames: {result['n_frames']}")
        print(f"Output: {result['output_path']}")

    if args.summary:
        manifest = result["manifest"]
        print("\n--- Manifest Summary ---")
        print(json.dumps(manifest["metadata"], indent=2))
        frames = manifest["frames"]
        if frames:
            peaks = [frame["peak"] for frame in frames]
            beats = sum(1 for frame in frames if frame["is_beat"])
            print(f"\nPeak level: max={max(peaks)}, mean={sum(peaks) / len(peaks):.1f}")
            print(f"Beat frames: {beats}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
