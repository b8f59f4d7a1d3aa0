"""Random-access video files.

Analysis works on pre-recorded clips through random access: every stage seeks
to a timestamp, decodes one frame, and finishes with it before the next seek.
`VideoFile` wraps `cv2.VideoCapture` for that; tests substitute any object with
the same `duration` / `seek` surface.
"""

from __future__ import annotations

import logging
from typing import Protocol

import cv2

from betavision.core.types import Frame

logger = logging.getLogger(__name__)


class SeekableVideo(Protocol):
    """Minimal random-access video interface used by the analysis stages."""

    duration: float
    width: int
    height: int

    def seek(self, seconds: float) -> Frame | None:
        """Return the frame at `seconds`, or `None` when it cannot be decoded."""


class VideoFile:
    """Seekable video file (any container/codec OpenCV can decode)."""

    def __init__(self, path: str) -> None:
        self.path = path
        self.cap = cv2.VideoCapture(path)
        if not self.cap.isOpened():
            raise RuntimeError(f"Failed to open video source: {path}")

        fps = 0.0
        frame_count = 0.0
        try:
            fps = float(self.cap.get(cv2.CAP_PROP_FPS) or 0.0)
            frame_count = float(self.cap.get(cv2.CAP_PROP_FRAME_COUNT) or 0.0)
            self.width = int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH) or 0)
            self.height = int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT) or 0)
        except Exception:
            # Some backends do not expose container metadata.
            self.width = 0
            self.height = 0
        self.fps = fps if fps > 0.0 else 30.0
        self.frame_count = int(frame_count) if frame_count > 0 else 0
        self.duration = self.frame_count / self.fps if self.frame_count else 0.0
        logger.debug(
            "Opened %s: %dx%d, %.2f fps, %.2fs", path, self.width, self.height, self.fps, self.duration
        )

    def seek(self, seconds: float) -> Frame | None:
        """Decode the frame at `seconds` (clamped to the clip)."""

        index = int(round(max(0.0, seconds) * self.fps))
        if self.frame_count:
            index = min(index, self.frame_count - 1)
        if not self.cap.set(cv2.CAP_PROP_POS_FRAMES, index):
            logger.debug("Seek to frame %d failed in %s", index, self.path)
            return None
        ok, frame = self.cap.read()
        if not ok:
            return None
        if not self.width or not self.height:
            self.height, self.width = frame.shape[:2]
        return frame

    def close(self) -> None:
        """Release the underlying OpenCV capture."""

        self.cap.release()
