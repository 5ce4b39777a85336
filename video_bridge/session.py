from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, List, Optional

from yolo_det.errors import YoloError

from .errors import FrameIndexError, StatePoisonedError, VideoNotLoadedError
from .frames import Frame, VideoStreamInfo

logger = logging.getLogger(__name__)


class VideoSession:
    """
    Decoded frames plus stream info for one video job.

    Owned by a host and only touched through `locked()`. An error from the
    taxonomy leaves the session usable; any other exception escaping while the
    lock is held poisons it, and every later `locked()` raises
    StatePoisonedError.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._poisoned = False
        self.frames: List[Frame] = []
        self.info: Optional[VideoStreamInfo] = None

    @property
    def poisoned(self) -> bool:
        return self._poisoned

    @contextmanager
    def locked(self) -> Iterator["VideoSession"]:
        with self._lock:
            if self._poisoned:
                raise StatePoisonedError("Video session was poisoned by an earlier failure")
            try:
                yield self
            except YoloError:
                raise
            except BaseException:
                self._poisoned = True
                logger.error("Unexpected failure while holding the video session lock; session poisoned")
                raise

    def load(self, frames: List[Frame], info: VideoStreamInfo) -> None:
        self.frames = frames
        self.info = info

    def clear(self) -> None:
        self.frames = []
        self.info = None

    def require_info(self) -> VideoStreamInfo:
        if self.info is None:
            raise VideoNotLoadedError("No video loaded")
        return self.info

    def frame(self, index: int) -> Frame:
        self.require_info()
        if not 0 <= index < len(self.frames):
            raise FrameIndexError(index, len(self.frames))
        return self.frames[index]
