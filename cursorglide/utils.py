"""Shared helpers: ffmpeg lookup, time formatting, frame timing, encoders."""

import logging
import math
import subprocess
import sys
from typing import Dict, List, Tuple

import imageio_ffmpeg

logger = logging.getLogger(__name__)

FRAME_NUMBER_PADDING = 6
FRAME_PATTERN = f"frame_%0{FRAME_NUMBER_PADDING}d.png"  # ffmpeg numbering starts at 1


def ffmpeg_exe() -> str:
    """Path of the ffmpeg binary shipped with imageio-ffmpeg."""
    exe = imageio_ffmpeg.get_ffmpeg_exe()
    logger.debug("Using ffmpeg at %s", exe)
    return exe


def subprocess_kwargs() -> dict:
    """Popen kwargs that keep ffmpeg from opening a console on Windows."""
    if sys.platform != "win32":
        return {}
    startup = subprocess.STARTUPINFO()
    startup.dwFlags |= subprocess.STARTF_USESHOWWINDOW
    return {"startupinfo": startup, "creationflags": subprocess.CREATE_NO_WINDOW}


def fmt_time(ms: float) -> str:
    """Format milliseconds as ``m:ss``, or ``h:mm:ss`` from one hour up."""
    total = int(max(ms, 0) / 1000)
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes}:{seconds:02d}"


# ── Frame timing ────────────────────────────────────────────────────


def frame_count(duration_ms: float, frame_rate: float) -> int:
    """Number of output frames: ``ceil(duration / frame_interval)``."""
    if duration_ms <= 0 or frame_rate <= 0:
        return 0
    # round first so 1000 ms at 30 fps is exactly 30, not 31
    return int(math.ceil(round(duration_ms * frame_rate / 1000.0, 6)))


def frame_timestamp(index: int, frame_rate: float, duration_ms: float) -> float:
    """Timestamp of frame *index*, clamped to the video duration."""
    return min(index * 1000.0 / frame_rate, duration_ms)


def frame_filename(index: int) -> str:
    """File name of zero-based frame *index* (``frame_000001.png`` for 0)."""
    return FRAME_PATTERN % (index + 1)


# ── Encoder support ─────────────────────────────────────────────────

# Encoder ID → (display name, ffmpeg codec name, quality args)
ENCODER_PROFILES: Dict[str, Tuple[str, str, List[str]]] = {
    "h264_nvenc":  ("NVIDIA NVENC",   "h264_nvenc",  ["-preset", "p4", "-cq", "18", "-b:v", "0"]),
    "h264_qsv":    ("Intel QuickSync", "h264_qsv",   ["-preset", "medium", "-global_quality", "18"]),
    "libx264":     ("Software (x264)", "libx264",     ["-preset", "medium", "-crf", "18"]),
}


def encoder_display_name(enc_id: str) -> str:
    """Human-readable name for an encoder ID."""
    profile = ENCODER_PROFILES.get(enc_id)
    return profile[0] if profile else enc_id


def build_encoder_args(enc_id: str) -> List[str]:
    """Return ffmpeg arguments for the given encoder ID.

    Returns ``["-c:v", "<codec>", ...quality_args..., "-pix_fmt", "yuv420p"]``.
    Unknown IDs use the software encoder.
    """
    profile = ENCODER_PROFILES.get(enc_id)
    if profile is None:
        profile = ENCODER_PROFILES["libx264"]
    _, codec, quality_args = profile
    return ["-c:v", codec] + quality_args + ["-pix_fmt", "yuv420p"]
