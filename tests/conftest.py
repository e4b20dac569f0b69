"""Shared pytest fixtures for cursorglide tests."""

import os

import cv2
import numpy as np
import pytest

from cursorglide.config import CursorConfig, ZoomConfig
from cursorglide.frame_extractor import save_frame
from cursorglide.models import (
    ClickEvent,
    CursorKeyframe,
    MouseEvent,
    RecordingMetadata,
    VideoInfo,
)


# ── Video ───────────────────────────────────────────────────────────

@pytest.fixture
def video_info() -> VideoInfo:
    """A one-second 1920×1080 recording at 30 fps."""
    return VideoInfo(path="recording.mp4", width=1920, height=1080, frame_rate=30.0, duration=1000.0)


@pytest.fixture
def small_video() -> VideoInfo:
    """A tiny one-second 64×48 recording, cheap enough to render fully."""
    return VideoInfo(path="small.mp4", width=64, height=48, frame_rate=30.0, duration=1000.0)


# ── Cursor keyframes ────────────────────────────────────────────────

@pytest.fixture
def straight_keyframes() -> list[CursorKeyframe]:
    """Horizontal 100 px move over one second, linear easing."""
    return [
        CursorKeyframe(timestamp=0.0, x=0.0, y=0.0, easing="linear"),
        CursorKeyframe(timestamp=1000.0, x=100.0, y=0.0, easing="linear"),
    ]


@pytest.fixture
def curved_keyframes() -> list[CursorKeyframe]:
    """Four keyframes so the middle span uses a Catmull-Rom curve."""
    return [
        CursorKeyframe(timestamp=0.0, x=100.0, y=100.0),
        CursorKeyframe(timestamp=300.0, x=400.0, y=200.0),
        CursorKeyframe(timestamp=600.0, x=600.0, y=500.0),
        CursorKeyframe(timestamp=1000.0, x=900.0, y=400.0),
    ]


# ── Mouse events ────────────────────────────────────────────────────

@pytest.fixture
def rest_then_jump() -> list[MouseEvent]:
    """A short rest near (100, 100) followed by a far jump."""
    return [
        MouseEvent(x=100, y=100, timestamp=0),
        MouseEvent(x=102, y=101, timestamp=50),
        MouseEvent(x=500, y=500, timestamp=2000),
    ]


@pytest.fixture
def move_then_settle() -> list[MouseEvent]:
    """Steady 16 px/frame drag to x=900, then 800 ms at rest."""
    events = [MouseEvent(x=100.0 + i * 16, y=500.0, timestamp=i * 16.0) for i in range(51)]
    events += [MouseEvent(x=900.0, y=500.0, timestamp=800.0 + j * 16) for j in range(1, 51)]
    return events


@pytest.fixture
def click_events() -> list[ClickEvent]:
    return [
        ClickEvent(timestamp=500.0, action="down", x=50, y=0),
        ClickEvent(timestamp=560.0, action="up", x=50, y=0),
    ]


# ── Metadata ────────────────────────────────────────────────────────

@pytest.fixture
def small_metadata(small_video: VideoInfo) -> RecordingMetadata:
    """Metadata for :func:`small_video` with a diagonal cursor move."""
    return RecordingMetadata(
        video=small_video,
        cursor_keyframes=[
            CursorKeyframe(timestamp=0.0, x=10.0, y=10.0, easing="linear"),
            CursorKeyframe(timestamp=1000.0, x=50.0, y=40.0, easing="linear"),
        ],
        cursor_config=CursorConfig(size=20, color="#ff0000"),
        zoom_config=ZoomConfig(enabled=False),
        clicks=[ClickEvent(timestamp=300.0)],
    )


# ── Frames on disk ──────────────────────────────────────────────────

def make_frame(index: int, width: int = 64, height: int = 48) -> np.ndarray:
    """A gray frame with a brightness that depends on *index*."""
    frame = np.full((height, width, 3), 40 + (index * 5) % 200, dtype=np.uint8)
    cv2.rectangle(frame, (4, 4), (width // 2, height // 2), (0, 180, 0), -1)
    return frame


@pytest.fixture
def write_frames():
    """Factory writing *count* numbered frames into a directory."""
    def _write(frame_dir, count: int, width: int = 64, height: int = 48) -> str:
        frame_dir = str(frame_dir)
        os.makedirs(frame_dir, exist_ok=True)
        for i in range(count):
            save_frame(frame_dir, i, make_frame(i, width, height))
        return frame_dir
    return _write


# ── Qt ──────────────────────────────────────────────────────────────

@pytest.fixture(scope="session")
def qt_app():
    """Headless QGuiApplication for tests that paint with Qt."""
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
    from PySide6.QtGui import QGuiApplication
    app = QGuiApplication.instance() or QGuiApplication([])
    yield app
