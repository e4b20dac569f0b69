"""Export pipeline — metadata + recording in, cursor/zoom-rendered MP4 out.

Stages and the progress reported when each starts:

=====================  ========
analyze                 5 %
extract frames         10 %
prepare cursor         15 %
process motion data    20 %
render                 25 → 85 %
encode                 90 %
complete              100 %
=====================  ========

Frame states are synthesized once, single-threaded (the zoom spring is
sequential).  Compositing then runs on a bounded thread pool, one batch
of :data:`FRAME_BATCH_SIZE` frames in flight at a time.  A frame that
cannot be loaded or rendered is logged and skipped; the export fails
only when no frame at all was produced.
"""

import logging
import os
import shutil
import tempfile
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from typing import Callable, Iterable, List, Optional, Set

from PySide6.QtCore import QObject, Signal

from .compositor import compose_frame
from .config import RenderOptions
from .cursor_renderer import CursorImageCache, to_cursor_shape
from .errors import CursorGlideError, ExportCancelledError, ExportError, FrameNotFoundError
from .frame_extractor import (
    count_frames,
    encode_frames,
    extract_frames,
    load_frame,
    save_frame,
)
from .models import FrameState, MouseEvent, RecordingMetadata, VideoInfo
from .synthesizer import create_frame_states_from_events, create_frame_states_from_keyframes
from .utils import frame_count, frame_filename

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float, str], None]

FRAME_BATCH_SIZE = 100

PROGRESS_ANALYZE = 5
PROGRESS_EXTRACT = 10
PROGRESS_PREPARE_CURSOR = 15
PROGRESS_PROCESS_MOTION = 20
PROGRESS_RENDER_START = 25
PROGRESS_RENDER_SPAN = 60
PROGRESS_ENCODE = 90
PROGRESS_COMPLETE = 100


class _Progress:
    """Forwards to a callback, never letting the percentage go backwards."""

    def __init__(self, callback: Optional[ProgressCallback]) -> None:
        self._callback = callback
        self._last = 0.0

    def __call__(self, percent: float, status: str) -> None:
        percent = max(self._last, min(float(percent), 100.0))
        self._last = percent
        logger.debug("Progress %.0f%%: %s", percent, status)
        if self._callback is not None:
            self._callback(percent, status)


@dataclass
class RenderStats:
    rendered: int = 0
    skipped: List[int] = field(default_factory=list)
    cancelled: bool = False


def reconcile_frame_count(predicted: int, decoded: int) -> int:
    """Frames to render when metadata and the decoder disagree.

    The shorter of the two wins; a mismatch is logged.
    """
    if decoded != predicted:
        logger.warning(
            "Metadata predicts %d frames but %d were decoded; rendering %d",
            predicted, decoded, min(predicted, decoded),
        )
    return min(predicted, decoded)


def synthesize_states(metadata: RecordingMetadata,
                      events: Optional[List[MouseEvent]] = None,
                      video: Optional[VideoInfo] = None) -> List[FrameState]:
    """Frame states from raw *events* when given, else from keyframes."""
    video = video or metadata.video
    if events:
        return create_frame_states_from_events(
            events, video, metadata.cursor_config, metadata.zoom_config, metadata.clicks)
    return create_frame_states_from_keyframes(
        metadata.cursor_keyframes, video, metadata.cursor_config,
        metadata.zoom_config, metadata.zoom_sections, metadata.clicks,
    )


def cursor_shapes(metadata: RecordingMetadata,
                  events: Optional[Iterable[MouseEvent]] = None) -> Set[str]:
    """Every cursor shape the export may need to rasterize."""
    shapes = {metadata.cursor_config.shape}
    shapes.update(kf.shape for kf in metadata.cursor_keyframes if kf.shape)
    if events:
        shapes.update(to_cursor_shape(ev.cursor_type) for ev in events if ev.cursor_type)
    return shapes


def _render_one(state: FrameState, source_dir: str, output_dir: str,
                options: RenderOptions, cache: CursorImageCache) -> bool:
    try:
        frame = load_frame(source_dir, state.frame_index)
    except FrameNotFoundError as exc:
        logger.warning("%s; skipping frame", exc)
        return False
    try:
        out = compose_frame(frame, state, options, cache)
        save_frame(output_dir, state.frame_index, out)
    except Exception:
        logger.exception("Rendering frame %d failed; skipping", state.frame_index)
        return False
    return True


def _compact_sequence(output_dir: str, rendered: List[int]) -> None:
    """Renumber rendered frames so the sequence has no gaps."""
    for new_index, old_index in enumerate(sorted(rendered)):
        if new_index != old_index:
            os.replace(os.path.join(output_dir, frame_filename(old_index)),
                       os.path.join(output_dir, frame_filename(new_index)))


def render_frames(
    states: List[FrameState],
    source_dir: str,
    output_dir: str,
    options: RenderOptions,
    cache: CursorImageCache,
    batch_size: int = FRAME_BATCH_SIZE,
    max_workers: Optional[int] = None,
    progress: Optional[ProgressCallback] = None,
    cancel: Optional[threading.Event] = None,
) -> RenderStats:
    """Composite every state onto its source frame, in bounded batches.

    Output frames are numbered contiguously from ``frame_000001.png``
    even when some source frames were missing.  Setting *cancel* stops
    new batches from being submitted; the current batch still finishes.
    """
    os.makedirs(output_dir, exist_ok=True)
    stats = RenderStats()
    rendered: List[int] = []
    total = len(states)
    batch_size = max(1, batch_size)

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        for start in range(0, total, batch_size):
            if cancel is not None and cancel.is_set():
                logger.info("Render cancelled after %d of %d frames", start, total)
                stats.cancelled = True
                break
            batch = states[start:start + batch_size]
            futures = [
                pool.submit(_render_one, s, source_dir, output_dir, options, cache)
                for s in batch
            ]
            for state, future in zip(batch, futures):
                if future.result():
                    rendered.append(state.frame_index)
                else:
                    stats.skipped.append(state.frame_index)
            done = start + len(batch)
            if progress is not None:
                progress(done / total, f"Rendered {done}/{total} frames")

    if stats.skipped:
        logger.warning("Skipped %d frames: %s", len(stats.skipped), stats.skipped[:20])
        _compact_sequence(output_dir, rendered)
    stats.rendered = len(rendered)
    return stats


def render_sequence(
    metadata: RecordingMetadata,
    source_dir: str,
    output_dir: str,
    assets_dir: Optional[str] = None,
    events: Optional[List[MouseEvent]] = None,
    output_width: Optional[int] = None,
    output_height: Optional[int] = None,
    progress: Optional[ProgressCallback] = None,
    cancel: Optional[threading.Event] = None,
    batch_size: int = FRAME_BATCH_SIZE,
    decoded_frames: Optional[int] = None,
) -> RenderStats:
    """Render a directory of source frames into a directory of output frames.

    Covers the prepare-cursor, process-motion-data and render stages.
    Raises :class:`~cursorglide.errors.MissingAssetError` before any
    frame work if a cursor glyph cannot be resolved, and
    :class:`ExportError` if no frame was produced.  A cancelled render
    returns early with ``stats.cancelled`` set.
    """
    report = progress if isinstance(progress, _Progress) else _Progress(progress)
    video = metadata.video
    cursor = metadata.cursor_config

    report(PROGRESS_PREPARE_CURSOR, "Preparing cursor")
    cache = CursorImageCache(cursor.color, assets_dir)
    cache.prepare(cursor_shapes(metadata, events), cursor.clamped_size)

    report(PROGRESS_PROCESS_MOTION, "Processing motion data")
    predicted = frame_count(video.duration, video.frame_rate)
    if decoded_frames is None:
        decoded_frames = count_frames(source_dir)
    n = reconcile_frame_count(predicted, decoded_frames)
    if n < predicted:
        video = replace(video, duration=n * video.frame_interval)
    states = synthesize_states(metadata, events, video)

    options = RenderOptions.from_configs(
        cursor, metadata.zoom_config, video.frame_rate, output_width, output_height)

    report(PROGRESS_RENDER_START, "Rendering frames")

    def on_batch(fraction: float, status: str) -> None:
        report(PROGRESS_RENDER_START + fraction * PROGRESS_RENDER_SPAN, status)

    stats = render_frames(states, source_dir, output_dir, options, cache,
                          batch_size=batch_size, progress=on_batch, cancel=cancel)
    if stats.cancelled:
        return stats
    if stats.rendered == 0:
        raise ExportError("No frames were rendered")
    logger.info("Rendered %d frames (%d skipped)", stats.rendered, len(stats.skipped))
    return stats


def export_video(
    metadata: RecordingMetadata,
    input_path: str,
    output_path: str,
    assets_dir: Optional[str] = None,
    events: Optional[List[MouseEvent]] = None,
    output_width: Optional[int] = None,
    output_height: Optional[int] = None,
    encoder_id: str = "libx264",
    progress: Optional[ProgressCallback] = None,
    cancel: Optional[threading.Event] = None,
    work_dir: Optional[str] = None,
) -> str:
    """Full pipeline: extract, render, encode.  Returns the output path.

    Temporary frame directories are created under *work_dir* (or the
    system temp dir) and removed afterwards, even on failure.  Raises
    :class:`~cursorglide.errors.ExportCancelledError` without encoding
    when *cancel* is set during rendering.
    """
    report = _Progress(progress)
    report(PROGRESS_ANALYZE, "Analyzing recording")
    if not os.path.isfile(input_path):
        raise ExportError(f"Input video not found: {input_path}")

    tmp = tempfile.mkdtemp(prefix="cursorglide-", dir=work_dir)
    try:
        source_dir = os.path.join(tmp, "source")
        output_dir = os.path.join(tmp, "rendered")

        report(PROGRESS_EXTRACT, "Extracting frames")
        decoded = extract_frames(input_path, source_dir, metadata.video.frame_rate)

        stats = render_sequence(
            metadata, source_dir, output_dir,
            assets_dir=assets_dir, events=events,
            output_width=output_width, output_height=output_height,
            progress=report, cancel=cancel, decoded_frames=decoded,
        )
        if stats.cancelled:
            raise ExportCancelledError("Export cancelled")

        report(PROGRESS_ENCODE, "Encoding video")
        result = encode_frames(output_dir, output_path, metadata.video.frame_rate, encoder_id)
        report(PROGRESS_COMPLETE, "Complete")
        return result
    finally:
        shutil.rmtree(tmp, ignore_errors=True)


class VideoExporter(QObject):
    """Runs :func:`export_video` on a background thread with Qt signals."""

    progress = Signal(float)  # 0.0–1.0
    finished = Signal(str)    # output path
    error = Signal(str)
    status = Signal(str)      # stage descriptions
    cancelled = Signal()

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._thread: Optional[threading.Thread] = None
        self._cancel = threading.Event()

    # ── public API ──────────────────────────────────────────────────

    def export(
        self,
        metadata: RecordingMetadata,
        input_path: str,
        output_path: str,
        assets_dir: Optional[str] = None,
        events: Optional[List[MouseEvent]] = None,
        output_dim=None,
        encoder_id: str = "libx264",
    ) -> None:
        """Start export in a background thread.

        *output_dim* — ``(width, height)`` tuple, or ``None`` to keep the
        source resolution.
        """
        self._cancel.clear()
        self._thread = threading.Thread(
            target=self._run,
            args=(metadata, input_path, output_path, assets_dir, events,
                  output_dim, encoder_id),
            daemon=True,
        )
        self._thread.start()

    def cancel(self) -> None:
        """Stop after the batch currently being rendered."""
        self._cancel.set()

    def wait(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    # ── internal ────────────────────────────────────────────────────

    def _on_progress(self, percent: float, status: str) -> None:
        self.progress.emit(percent / 100.0)
        self.status.emit(status)

    def _run(
        self,
        metadata: RecordingMetadata,
        input_path: str,
        output_path: str,
        assets_dir: Optional[str],
        events: Optional[List[MouseEvent]],
        output_dim=None,
        encoder_id: str = "libx264",
    ) -> None:
        out_w = out_h = None
        if isinstance(output_dim, (tuple, list)):
            out_w, out_h = int(output_dim[0]), int(output_dim[1])
        try:
            result = export_video(
                metadata, input_path, output_path,
                assets_dir=assets_dir, events=events,
                output_width=out_w, output_height=out_h,
                encoder_id=encoder_id, progress=self._on_progress,
                cancel=self._cancel,
            )
        except ExportCancelledError:
            logger.info("Export cancelled: %s", output_path)
            self.cancelled.emit()
            return
        except CursorGlideError as exc:
            logger.error("Export failed: %s", exc)
            self.error.emit(str(exc))
            return
        except Exception as exc:
            logger.exception("Unexpected export failure")
            self.error.emit(str(exc))
            return
        self.finished.emit(result)
