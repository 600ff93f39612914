"""Command-line entry point.

Usage:
    framecast export composition.json -o out.mp4 [--cloud] [--preset tiktok] [--config overrides.json]
    framecast preview composition.json --time 3.5 -o frame.png
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from framecast.config import get_settings
from framecast.constants.presets import EXPORT_PRESETS, resolve_preset
from framecast.exceptions import FramecastError, InvalidCompositionError
from framecast.export.cloud import CloudExportOrchestrator
from framecast.export.local import LocalExportOrchestrator
from framecast.export.progress import ExportProgress
from framecast.render.frame_compositor import render_preview
from framecast.schemas.composition import Composition
from framecast.schemas.export_config import ExportConfig, merge_export_config

logger = logging.getLogger("framecast")


def _load_json(path: str) -> dict:
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise InvalidCompositionError(f"Cannot read {path}: {e}") from e
    if not isinstance(data, dict):
        raise InvalidCompositionError(f"{path} must contain a JSON object")
    return data


def _load_composition(path: str) -> Composition:
    try:
        return Composition.model_validate(_load_json(path))
    except ValidationError as e:
        raise InvalidCompositionError(f"Invalid composition in {path}: {e}") from e


def _load_config(args: argparse.Namespace) -> ExportConfig:
    overrides = _load_json(args.config) if args.config else None
    try:
        if args.preset:
            return resolve_preset(args.preset, overrides)
        return merge_export_config(overrides)
    except ValidationError as e:
        raise InvalidCompositionError(f"Invalid export config: {e}") from e


def _print_progress(progress: ExportProgress) -> None:
    counters = ""
    if progress.current_frame is not None and progress.total_frames is not None:
        counters = f" [{progress.current_frame}/{progress.total_frames}]"
    print(f"{progress.stage.value:>9} {progress.percent:5.1f}% {progress.message}{counters}")


def _run_export(args: argparse.Namespace) -> int:
    composition = _load_composition(args.composition)
    config = _load_config(args)
    exporter_cls = CloudExportOrchestrator if args.cloud else LocalExportOrchestrator
    exporter = exporter_cls()

    result = asyncio.run(
        exporter.export(
            composition,
            on_progress=None if args.quiet else _print_progress,
            config=config,
            persist=args.persist,
        )
    )
    Path(args.output).write_bytes(result.file_blob)
    print(f"Wrote {args.output} ({result.total_frames} frames, {len(result.file_blob)} bytes)")
    if result.remote_url:
        print(f"Stored at {result.remote_url}")
    return 0


def _run_preview(args: argparse.Namespace) -> int:
    composition = _load_composition(args.composition)
    config = _load_config(args)
    png = render_preview(composition, args.time, config, fps=config.fps or get_settings().render_fps)
    Path(args.output).write_bytes(png)
    print(f"Wrote {args.output}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="framecast", description="Render timed compositions to video")
    sub = parser.add_subparsers(dest="command", required=True)

    export = sub.add_parser("export", help="Render and encode a composition")
    export.add_argument("composition", help="Composition JSON file")
    export.add_argument("-o", "--output", required=True, help="Output .mp4 path")
    export.add_argument("--cloud", action="store_true", help="Encode on the export server")
    export.add_argument("--config", help="Export config overrides (JSON)")
    export.add_argument("--preset", choices=list(EXPORT_PRESETS), help="Platform export preset")
    export.add_argument("--persist", action="store_true", help="Also save the result to storage")
    export.add_argument("-q", "--quiet", action="store_true", help="Do not print progress")
    export.set_defaults(func=_run_export)

    preview = sub.add_parser("preview", help="Render a single frame as PNG")
    preview.add_argument("composition", help="Composition JSON file")
    preview.add_argument("--time", type=float, default=0.0, help="Timestamp in seconds")
    preview.add_argument("-o", "--output", required=True, help="Output .png path")
    preview.add_argument("--config", help="Export config overrides (JSON)")
    preview.add_argument("--preset", choices=list(EXPORT_PRESETS), help="Platform export preset")
    preview.set_defaults(func=_run_preview)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return args.func(args)
    except FramecastError as e:
        logger.error(f"{e.code}: {e.message}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
