"""Exception types raised by the motion and compositing pipeline."""


class CursorGlideError(Exception):
    """Base class for all pipeline errors."""


class MissingAssetError(CursorGlideError, FileNotFoundError):
    """No rasterizable glyph exists for a requested cursor shape.

    Fatal for the export that needs it.  Raised while the cursor is
    prepared, before any frame is rendered.
    """

    def __init__(self, shape: str, detail: str = "") -> None:
        self.shape = shape
        msg = f"No cursor glyph for shape '{shape}'"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class InvalidKeyframeDataError(CursorGlideError, ValueError):
    """Keyframes with decreasing timestamps, NaN coordinates or bad enums."""


class FrameNotFoundError(CursorGlideError):
    """A numbered source frame the decode step never produced."""

    def __init__(self, frame_index: int, path: str) -> None:
        self.frame_index = frame_index
        self.path = path
        super().__init__(f"Source frame {frame_index} not found: {path}")


class ZoomRegionUnavailableError(CursorGlideError, LookupError):
    """Timestamp or frame index outside the smoothed zoom region table."""


class ExportError(CursorGlideError):
    """The export produced no frames or an external step failed."""


class ExportCancelledError(CursorGlideError):
    """The export was cancelled before encoding; no output was written."""
