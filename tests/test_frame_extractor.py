"""Tests for cursorglide.frame_extractor — frame files and ffmpeg wrappers."""

import os
from unittest.mock import patch

import cv2
import numpy as np
import pytest

from cursorglide.errors import ExportError, FrameNotFoundError
from cursorglide.frame_extractor import (
    count_frames,
    encode_frames,
    extract_frames,
    first_frame_size,
    load_frame,
    probe_video,
    save_frame,
)
from cursorglide.utils import frame_filename


class TestFrameFiles:
    def test_save_load(self, tmp_path) -> None:
        frame = np.random.default_rng(1).integers(0, 255, (12, 16, 3), dtype=np.uint8)
        path = save_frame(str(tmp_path), 0, frame)
        assert os.path.basename(path) == "frame_000001.png"
        assert np.array_equal(load_frame(str(tmp_path), 0), frame)

    def test_missing_frame(self, tmp_path) -> None:
        with pytest.raises(FrameNotFoundError) as exc_info:
            load_frame(str(tmp_path), 7)
        assert exc_info.value.frame_index == 7
        assert exc_info.value.path.endswith("frame_000008.png")

    def test_corrupt_frame(self, tmp_path) -> None:
        (tmp_path / frame_filename(0)).write_bytes(b"not a png")
        with pytest.raises(FrameNotFoundError):
            load_frame(str(tmp_path), 0)

    def test_count_and_size(self, tmp_path, write_frames) -> None:
        write_frames(tmp_path, 4, width=20, height=10)
        assert count_frames(str(tmp_path)) == 4
        assert first_frame_size(str(tmp_path)) == (20, 10)

    def test_size_of_empty_dir(self, tmp_path) -> None:
        assert first_frame_size(str(tmp_path)) is None


class TestProbe:
    def test_probe_written_video(self, tmp_path) -> None:
        path = str(tmp_path / "clip.avi")
        writer = cv2.VideoWriter(path, cv2.VideoWriter_fourcc(*"MJPG"), 30.0, (64, 48))
        for i in range(10):
            writer.write(np.full((48, 64, 3), i * 20, dtype=np.uint8))
        writer.release()
        probe = probe_video(path)
        assert (probe.width, probe.height) == (64, 48)
        assert probe.frame_rate == pytest.approx(30.0)
        assert probe.frame_count == 10
        assert probe.duration_ms == pytest.approx(1000.0 / 3)

    def test_probe_missing(self, tmp_path) -> None:
        with pytest.raises(ExportError):
            probe_video(str(tmp_path / "missing.mp4"))


class TestFfmpegWrappers:
    def test_extract_command(self, tmp_path, write_frames) -> None:
        calls = []

        def fake_run(cmd, what):
            calls.append(cmd)
            write_frames(cmd[-1].rsplit(os.sep, 1)[0], 3)

        with patch("cursorglide.frame_extractor.ffmpeg_exe", return_value="ffmpeg"), \
             patch("cursorglide.frame_extractor._run_ffmpeg", side_effect=fake_run):
            n = extract_frames("in.mp4", str(tmp_path / "src"), 30.0)
        assert n == 3
        cmd = calls[0]
        assert cmd[0] == "ffmpeg"
        assert cmd[cmd.index("-vf") + 1] == "fps=30.0"
        assert cmd[-1].endswith("frame_%06d.png")

    def test_encode_enforces_mp4(self, tmp_path) -> None:
        with patch("cursorglide.frame_extractor.ffmpeg_exe", return_value="ffmpeg"), \
             patch("cursorglide.frame_extractor._run_ffmpeg") as run:
            out = encode_frames(str(tmp_path), str(tmp_path / "out.mov"), 30.0)
        assert out.endswith("out.mp4")
        cmd = run.call_args[0][0]
        assert cmd[-1] == out
        assert cmd[cmd.index("-c:v") + 1] == "libx264"

    def test_encode_falls_back_to_software(self, tmp_path) -> None:
        with patch("cursorglide.frame_extractor.ffmpeg_exe", return_value="ffmpeg"), \
             patch("cursorglide.frame_extractor._run_ffmpeg",
                   side_effect=[ExportError("nvenc missing"), None]) as run:
            encode_frames(str(tmp_path), str(tmp_path / "out.mp4"), 30.0, "h264_nvenc")
        assert run.call_count == 2
        second = run.call_args_list[1][0][0]
        assert second[second.index("-c:v") + 1] == "libx264"

    def test_software_failure_raises(self, tmp_path) -> None:
        with patch("cursorglide.frame_extractor.ffmpeg_exe", return_value="ffmpeg"), \
             patch("cursorglide.frame_extractor._run_ffmpeg", side_effect=ExportError("broken")):
            with pytest.raises(ExportError):
                encode_frames(str(tmp_path), str(tmp_path / "out.mp4"), 30.0)
