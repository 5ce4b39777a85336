"""
Host side of the frame buffer boundary.

A `VideoHost` owns the decoded video. The caller drives it with five calls:

    host.init_logging(3)
    result = host.load_video("in.mp4")
    for index in range(result.frame_count):
        with buf.lend() as lease:
            host.get_frame(index, lease)
        ...
        with buf.lend() as lease:
            host.write_frame(index, lease)
    host.assemble_video("out.mp4")

A job that fails part way calls `host.discard()` so nothing of it can be
resumed. Pixel data only crosses the boundary through borrowed buffers; the host never
keeps a reference to caller memory.
"""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple, Union

from yolo_det.errors import Status

from .buffers import BorrowedBuffer
from .errors import BufferCapacityError, UnwrittenFramesError
from .frames import Frame, VideoStreamInfo
from .logs import init_logging
from .session import VideoSession
from .sink import EncodeReport, SinkConfig, encode_video, missing_outputs
from .source import decode_video

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]
Decoder = Callable[[PathLike], Tuple[List[Frame], VideoStreamInfo]]
Encoder = Callable[[Sequence[Frame], VideoStreamInfo, PathLike, SinkConfig], EncodeReport]


@dataclass(frozen=True)
class VideoLoadResult:
    width: int
    height: int
    frame_count: int

    @property
    def frame_bytes(self) -> int:
        return self.width * self.height * 3


class VideoHost(abc.ABC):
    """Capabilities a video host exposes to the inference loop."""

    @abc.abstractmethod
    def init_logging(self, verbosity: int) -> Status:
        """Configure host logging; 0 off .. 5 trace."""

    @abc.abstractmethod
    def load_video(self, path: PathLike) -> VideoLoadResult:
        """Decode the whole file, replacing any previously loaded video."""

    @abc.abstractmethod
    def get_frame(self, index: int, buffer: BorrowedBuffer) -> Status:
        """Copy frame `index` as RGB24 into `buffer`."""

    @abc.abstractmethod
    def write_frame(self, index: int, buffer: BorrowedBuffer) -> Status:
        """Store the processed RGB24 pixels in `buffer` as frame `index`'s output."""

    @abc.abstractmethod
    def assemble_video(self, path: PathLike) -> Status:
        """Encode every written output into `path` and drop the loaded video."""

    @abc.abstractmethod
    def discard(self) -> Status:
        """Drop the loaded video and any written outputs without encoding."""

    def close(self) -> None:
        self.discard()

    def __enter__(self) -> "VideoHost":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class InProcessVideoHost(VideoHost):
    def __init__(
        self,
        *,
        decoder: Decoder = decode_video,
        encoder: Encoder = encode_video,
        sink_config: Optional[SinkConfig] = None,
    ):
        self._decoder = decoder
        self._encoder = encoder
        self.sink_config = sink_config if sink_config is not None else SinkConfig()
        self.session = VideoSession()

    def init_logging(self, verbosity: int) -> Status:
        return init_logging(verbosity)

    def load_video(self, path: PathLike) -> VideoLoadResult:
        with self.session.locked() as session:
            frames, info = self._decoder(path)
            session.load(frames, info)
            result = VideoLoadResult(width=info.width, height=info.height, frame_count=len(frames))
        logger.info("Loaded %s: %dx%d, %d frames", path, result.width, result.height, result.frame_count)
        return result

    def get_frame(self, index: int, buffer: BorrowedBuffer) -> Status:
        with self.session.locked() as session:
            frame = session.frame(index)
            needed = frame.width * frame.height * 3
            if buffer.capacity < needed:
                raise BufferCapacityError(
                    f"Frame {index} needs {needed} bytes, buffer holds {buffer.capacity}"
                )
            buffer.write(frame.pixels.tobytes())
        return Status.OK

    def write_frame(self, index: int, buffer: BorrowedBuffer) -> Status:
        with self.session.locked() as session:
            session.frame(index).write_output(buffer.read())
        logger.debug("Stored output for frame %d", index)
        return Status.OK

    def assemble_video(self, path: PathLike) -> Status:
        with self.session.locked() as session:
            try:
                info = session.require_info()
                missing = missing_outputs(session.frames)
                if missing:
                    raise UnwrittenFramesError(missing)
                self._encoder(session.frames, info, path, self.sink_config)
            finally:
                session.clear()
        return Status.OK

    def discard(self) -> Status:
        with self.session.locked() as session:
            if session.info is not None:
                logger.info("Discarding loaded video (%d frames)", len(session.frames))
            session.clear()
        return Status.OK

    def close(self) -> None:
        # A poisoned session holds nothing worth keeping.
        if not self.session.poisoned:
            self.discard()
