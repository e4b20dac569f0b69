"""cursorglide — render a synthesized cursor and zoom track onto a recording."""

import argparse
import json
import logging
import shutil
import sys
import tempfile
from typing import List, Optional

from cursorglide.errors import CursorGlideError
from cursorglide.frame_extractor import encode_frames
from cursorglide.metadata_file import build_metadata_from_events, load_metadata, save_metadata
from cursorglide.models import MouseEvent, VideoInfo
from cursorglide.utils import fmt_time
from cursorglide.version import __version__
from cursorglide.video_exporter import export_video, render_sequence

_logger = logging.getLogger(__name__)


def _global_exception_handler(exc_type, exc_value, exc_tb):
    """Log unhandled exceptions instead of crashing silently."""
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_tb)
        return
    _logger.critical("Unhandled exception", exc_info=(exc_type, exc_value, exc_tb))


def _load_events(path: str) -> List[MouseEvent]:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("events", [])
    return [MouseEvent.from_dict(d) for d in data]


def _print_progress(percent: float, status: str) -> None:
    _logger.info("[%3.0f%%] %s", percent, status)


def _render_from_frames(args: argparse.Namespace, metadata, events) -> str:
    """Render from an already extracted frame directory, then encode."""
    tmp = tempfile.mkdtemp(prefix="cursorglide-")
    try:
        render_sequence(
            metadata, args.frames, tmp,
            assets_dir=args.assets, events=events,
            output_width=args.width, output_height=args.height,
            progress=_print_progress,
        )
        return encode_frames(tmp, args.output, metadata.video.frame_rate, args.encoder)
    finally:
        shutil.rmtree(tmp, ignore_errors=True)


def _cmd_render(args: argparse.Namespace) -> int:
    metadata = load_metadata(args.metadata)
    events = _load_events(args.events) if args.events else None
    _logger.info(
        "Rendering %s (%s at %.0f fps)", args.input,
        fmt_time(metadata.video.duration), metadata.video.frame_rate,
    )
    if args.frames:
        out = _render_from_frames(args, metadata, events)
    else:
        out = export_video(
            metadata, args.input, args.output,
            assets_dir=args.assets, events=events,
            output_width=args.width, output_height=args.height,
            encoder_id=args.encoder, progress=_print_progress,
        )
    _logger.info("Wrote %s", out)
    return 0


def _cmd_metadata(args: argparse.Namespace) -> int:
    events = _load_events(args.events)
    video = VideoInfo(
        path=args.video or "", width=args.width, height=args.height,
        frame_rate=args.fps, duration=args.duration,
    )
    metadata = build_metadata_from_events(events, video)
    out = save_metadata(args.output, metadata)
    _logger.info("Wrote %s (%d keyframes, %d zoom sections)",
                 out, len(metadata.cursor_keyframes), len(metadata.zoom_sections))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cursorglide", description=__doc__)
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    render = sub.add_parser("render", help="render a recording with its metadata")
    render.add_argument("metadata", help="recording metadata JSON")
    render.add_argument("input", help="source video")
    render.add_argument("output", help="output MP4")
    render.add_argument("--events", help="raw mouse events JSON (overrides keyframes)")
    render.add_argument("--frames", help="render from extracted frame_NNNNNN.png files")
    render.add_argument("--assets", help="directory with cursor SVG/PNG assets")
    render.add_argument("--width", type=int, help="output width")
    render.add_argument("--height", type=int, help="output height")
    render.add_argument("--encoder", default="libx264", help="ffmpeg encoder id")
    render.set_defaults(func=_cmd_render)

    meta = sub.add_parser("metadata", help="build metadata from raw mouse events")
    meta.add_argument("events", help="raw mouse events JSON")
    meta.add_argument("output", help="metadata JSON to write")
    meta.add_argument("--video", help="path of the recording")
    meta.add_argument("--width", type=int, required=True)
    meta.add_argument("--height", type=int, required=True)
    meta.add_argument("--fps", type=float, default=30.0)
    meta.add_argument("--duration", type=float, required=True, help="duration in ms")
    meta.set_defaults(func=_cmd_metadata)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Console entry point."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(name)s | %(levelname)s | %(message)s",
    )
    sys.excepthook = _global_exception_handler
    try:
        return args.func(args)
    except (CursorGlideError, ValueError, OSError) as exc:
        _logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
