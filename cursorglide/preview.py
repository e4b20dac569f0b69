"""Preview rendering — single frames through the export compositor.

:class:`PreviewRenderer` synthesizes the frame-state track once and
then composites any requested frame with :func:`compose_frame`, the
same function the exporter uses, so what the preview shows is what the
export produces.
"""

import logging
from typing import List, Optional

import numpy as np
from PySide6.QtGui import QImage

from .compositor import compose_frame
from .config import RenderOptions
from .cursor_renderer import CursorImageCache
from .models import FrameState, MouseEvent, RecordingMetadata
from .video_exporter import cursor_shapes, synthesize_states

logger = logging.getLogger(__name__)


class PreviewRenderer:
    """Frame-accurate preview of a recording's cursor and zoom track."""

    def __init__(self, metadata: RecordingMetadata,
                 events: Optional[List[MouseEvent]] = None,
                 assets_dir: Optional[str] = None,
                 output_width: Optional[int] = None,
                 output_height: Optional[int] = None) -> None:
        self.metadata = metadata
        cursor = metadata.cursor_config
        self.cache = CursorImageCache(cursor.color, assets_dir)
        self.cache.prepare(cursor_shapes(metadata, events), cursor.clamped_size)
        self.states: List[FrameState] = synthesize_states(metadata, events)
        self.options = RenderOptions.from_configs(
            cursor, metadata.zoom_config, metadata.video.frame_rate,
            output_width, output_height,
        )
        logger.debug("Preview ready: %d frame states", len(self.states))

    @property
    def frame_count(self) -> int:
        return len(self.states)

    def frame_index_at(self, time_ms: float) -> int:
        """Frame shown at *time_ms*, clamped to the track."""
        if not self.states:
            return 0
        idx = int(time_ms * self.metadata.video.frame_rate / 1000.0)
        return min(max(idx, 0), len(self.states) - 1)

    def state_at(self, time_ms: float) -> Optional[FrameState]:
        if not self.states:
            return None
        return self.states[self.frame_index_at(time_ms)]

    def render(self, frame_bgr: np.ndarray, time_ms: float) -> np.ndarray:
        """Composite the state at *time_ms* over *frame_bgr*."""
        state = self.state_at(time_ms)
        if state is None:
            return frame_bgr.copy()
        return compose_frame(frame_bgr, state, self.options, self.cache)


def to_qimage(frame_bgr: np.ndarray) -> QImage:
    """Convert a BGR frame to a detached RGB888 QImage for display."""
    rgb = np.ascontiguousarray(frame_bgr[:, :, ::-1])
    h, w = rgb.shape[:2]
    return QImage(rgb.data, w, h, rgb.strides[0], QImage.Format.Format_RGB888).copy()
