"""Tests for cursorglide.metadata_file — save / load and building from events."""

import json
import os

import pytest

from cursorglide.config import ZoomConfig
from cursorglide.errors import InvalidKeyframeDataError
from cursorglide.metadata_file import (
    METADATA_EXT,
    apply_frame_offset,
    build_metadata_from_events,
    events_to_keyframes,
    load_metadata,
    save_metadata,
)
from cursorglide.models import MouseEvent, RecordingMetadata, VideoInfo, ZoomSection


@pytest.fixture
def raw_events() -> list[MouseEvent]:
    return [
        MouseEvent(100, 100, 0),
        MouseEvent(120, 100, 50),
        MouseEvent(120, 100, 60, action="down", button="left"),
        MouseEvent(120, 100, 120, action="up", button="left"),
        MouseEvent(400, 300, 300, cursor_type="pointer"),
    ]


# ── save / load ─────────────────────────────────────────────────────


class TestSaveLoad:
    def test_round_trip(self, tmp_path, small_metadata: RecordingMetadata) -> None:
        path = save_metadata(str(tmp_path / "rec.json"), small_metadata)
        assert load_metadata(path) == small_metadata

    def test_extension_added(self, tmp_path, small_metadata: RecordingMetadata) -> None:
        path = save_metadata(str(tmp_path / "rec"), small_metadata)
        assert path.endswith(METADATA_EXT)
        assert os.path.isfile(path)

    def test_creates_parent_dir(self, tmp_path, small_metadata: RecordingMetadata) -> None:
        path = save_metadata(str(tmp_path / "nested" / "dir" / "rec.json"), small_metadata)
        assert os.path.isfile(path)

    def test_invalid_json(self, tmp_path) -> None:
        path = tmp_path / "bad.json"
        path.write_text("{not json")
        with pytest.raises(ValueError, match="Not a valid metadata file"):
            load_metadata(str(path))

    def test_missing_video(self, tmp_path) -> None:
        path = tmp_path / "novideo.json"
        path.write_text(json.dumps({"cursor": {}}))
        with pytest.raises(ValueError, match="missing video"):
            load_metadata(str(path))

    def test_bad_keyframes(self, tmp_path, small_metadata: RecordingMetadata) -> None:
        d = small_metadata.to_dict()
        d["cursor"]["keyframes"][1]["timestamp"] = -5
        path = tmp_path / "bad_kf.json"
        path.write_text(json.dumps(d))
        with pytest.raises(InvalidKeyframeDataError):
            load_metadata(str(path))

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(FileNotFoundError):
            load_metadata(str(tmp_path / "nope.json"))


# ── events_to_keyframes ─────────────────────────────────────────────


class TestEventsToKeyframes:
    def test_keyframe_placement(self, raw_events: list[MouseEvent]) -> None:
        keyframes, clicks = events_to_keyframes(raw_events, 1000.0)
        assert [k.timestamp for k in keyframes] == [0.0, 60, 300, 1000.0]
        assert [k.shape for k in keyframes] == ["arrow", "arrow", "pointer", "pointer"]
        assert (keyframes[-1].x, keyframes[-1].y) == (400, 300)
        assert [c.action for c in clicks] == ["down", "up"]

    def test_movement_keyframes(self) -> None:
        events = [MouseEvent(i * 10.0, 0, i * 50.0) for i in range(11)]
        keyframes, _ = events_to_keyframes(events, 500.0)
        assert [k.timestamp for k in keyframes] == [0.0, 100.0, 200.0, 300.0, 400.0, 500.0]

    def test_small_jitter_ignored(self) -> None:
        events = [MouseEvent(100 + (i % 2), 100, i * 120.0) for i in range(5)]
        keyframes, _ = events_to_keyframes(events, 600.0)
        assert [k.timestamp for k in keyframes] == [0.0, 600.0]

    def test_empty(self) -> None:
        assert events_to_keyframes([], 1000.0) == ([], [])

    def test_timestamps_ordered(self, raw_events: list[MouseEvent]) -> None:
        keyframes, _ = events_to_keyframes(raw_events, 1000.0)
        times = [k.timestamp for k in keyframes]
        assert times == sorted(times)


# ── build_metadata_from_events ──────────────────────────────────────


class TestBuildMetadata:
    def test_document(self, raw_events: list[MouseEvent]) -> None:
        video = VideoInfo("rec.mp4", 1920, 1080, 30.0, 1000.0)
        m = build_metadata_from_events(raw_events, video)
        assert m.video is video
        assert len(m.cursor_keyframes) == 4
        assert len(m.clicks) == 2
        assert m.zoom_sections
        assert m.zoom_sections[0].scale == 2.0

    def test_zoom_disabled(self, raw_events: list[MouseEvent]) -> None:
        video = VideoInfo("rec.mp4", 1920, 1080, 30.0, 1000.0)
        m = build_metadata_from_events(raw_events, video, zoom_config=ZoomConfig(enabled=False))
        assert m.zoom_sections == []

    def test_unsorted_input(self, raw_events: list[MouseEvent]) -> None:
        video = VideoInfo("rec.mp4", 1920, 1080, 30.0, 1000.0)
        m = build_metadata_from_events(list(reversed(raw_events)), video)
        assert [k.timestamp for k in m.cursor_keyframes] == [0.0, 60, 300, 1000.0]


# ── apply_frame_offset ──────────────────────────────────────────────


class TestApplyFrameOffset:
    def test_shift_later(self, small_metadata: RecordingMetadata) -> None:
        shifted = apply_frame_offset(small_metadata, 3)
        assert [k.timestamp for k in shifted.cursor_keyframes] == pytest.approx([100.0, 1100.0])
        assert shifted.clicks[0].timestamp == pytest.approx(400.0)

    def test_shift_earlier_clamps(self, small_metadata: RecordingMetadata) -> None:
        shifted = apply_frame_offset(small_metadata, -3)
        assert [k.timestamp for k in shifted.cursor_keyframes] == pytest.approx([0.0, 900.0])

    def test_original_untouched(self, small_metadata: RecordingMetadata) -> None:
        apply_frame_offset(small_metadata, 5)
        assert small_metadata.cursor_keyframes[0].timestamp == 0.0
        assert small_metadata.clicks[0].timestamp == 300.0

    def test_sections_shift(self, small_metadata: RecordingMetadata) -> None:
        small_metadata.zoom_sections = [ZoomSection(100, 400, 2.0, 10, 10)]
        shifted = apply_frame_offset(small_metadata, 3)
        s = shifted.zoom_sections[0]
        assert (s.start_time, s.end_time) == pytest.approx((200.0, 500.0))
