from __future__ import annotations

import logging
from dataclasses import replace
from fractions import Fraction
from pathlib import Path
from typing import Iterator, List, Optional, Tuple, Union

import av

from .errors import CodecNotFoundError, DecodeError, NoFramesError, StreamNotFoundError, VideoIOError
from .frames import Frame, FrameKind, VideoStreamInfo

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _positive_fraction(value: object) -> Optional[Fraction]:
    if value is None:
        return None
    frac = Fraction(value)  # type: ignore[arg-type]
    return frac if frac > 0 else None


class FrameSource:
    """
    Decodes the best video stream of a container into RGB24 frames.

    Use as a context manager; `info` is available once the source is open and
    `decode()` yields frames in presentation order, flushing the decoder at the
    end of the stream.
    """

    def __init__(self, path: PathLike):
        self.path = Path(path)
        self._container: Optional[av.container.InputContainer] = None
        self._stream: Optional[av.video.stream.VideoStream] = None
        self.info: Optional[VideoStreamInfo] = None

    def __enter__(self) -> "FrameSource":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def open(self) -> None:
        if not self.path.exists():
            raise VideoIOError(f"Video not found: {self.path}")
        try:
            container = av.open(str(self.path), mode="r")
        except OSError as exc:
            raise VideoIOError(f"Could not open video {self.path}: {exc}") from exc
        except av.error.FFmpegError as exc:
            raise DecodeError(f"Could not read container {self.path}: {exc}") from exc

        stream = container.streams.best("video")
        if stream is None:
            container.close()
            raise StreamNotFoundError(f"No video stream in {self.path}")
        if stream.codec_context is None:
            container.close()
            raise CodecNotFoundError(f"No decoder available for the video stream in {self.path}")

        self._container = container
        self._stream = stream
        self.info = self._read_info(container, stream)
        logger.debug("Opened %s: %s", self.path, self.info)

    def close(self) -> None:
        if self._container is not None:
            self._container.close()
        self._container = None
        self._stream = None

    @staticmethod
    def _read_info(container, stream) -> VideoStreamInfo:
        ctx = stream.codec_context
        frame_rate = _positive_fraction(stream.average_rate) or _positive_fraction(stream.guessed_rate)
        bit_rate = int(ctx.bit_rate or container.bit_rate or 0)

        logger.debug("Decoder codec %s (%s)", ctx.name, ctx.codec.long_name)
        logger.debug("  bit rate %s, time base %s, pix_fmt %s", bit_rate, stream.time_base, ctx.pix_fmt)

        return VideoStreamInfo(
            width=int(ctx.width),
            height=int(ctx.height),
            frame_rate=frame_rate,
            codec_name=str(ctx.name),
            bit_rate=bit_rate,
            aspect_ratio=_positive_fraction(ctx.sample_aspect_ratio),
            pix_fmt=ctx.pix_fmt,
            time_base=_positive_fraction(stream.time_base),
            stream_count=len(container.streams),
            metadata=dict(container.metadata),
        )

    def _to_frame(self, av_frame: av.VideoFrame, index: int) -> Frame:
        # to_ndarray runs libswscale to convert from the decoder's pixel format.
        pixels = av_frame.to_ndarray(format="rgb24")
        kind = FrameKind.INTRA if av_frame.key_frame else FrameKind.PREDICTED
        logger.debug("frame %d pts=%s kind=%s", index, av_frame.pts, kind.value)
        return Frame(
            index=index,
            pixels=pixels,
            pts=av_frame.pts,
            time_base=_positive_fraction(av_frame.time_base),
            kind=kind,
        )

    def decode(self) -> Iterator[Frame]:
        if self._container is None or self._stream is None:
            raise DecodeError("FrameSource is not open")

        stream = self._stream
        index = 0
        try:
            for packet in self._container.demux(stream):
                # demux() ends with an empty packet per stream; the decoder is
                # flushed explicitly below instead.
                if packet.size == 0:
                    continue
                for av_frame in packet.decode():
                    yield self._to_frame(av_frame, index)
                    index += 1

            for av_frame in stream.codec_context.decode(None):
                yield self._to_frame(av_frame, index)
                index += 1
        except av.error.DecoderNotFoundError as exc:
            raise CodecNotFoundError(f"No decoder for {self.path}: {exc}") from exc
        except av.error.FFmpegError as exc:
            raise DecodeError(f"Decoding {self.path} failed at frame {index}: {exc}") from exc


def decode_video(path: PathLike) -> Tuple[List[Frame], VideoStreamInfo]:
    """
    Decode a whole video into memory.

    Raises NoFramesError when the stream decodes to nothing.
    """

    with FrameSource(path) as source:
        frames = list(source.decode())
        info = source.info

    if not frames or info is None:
        raise NoFramesError(f"Video {path} contained no frames")

    first = frames[0]
    if (first.width, first.height) != (info.width, info.height):
        # Some containers report the coded size; trust the decoded frames.
        logger.debug("Stream reports %dx%d, frames are %dx%d", info.width, info.height, first.width, first.height)
        info = replace(info, width=first.width, height=first.height)

    logger.info("Decoded %d frames (%dx%d) from %s", len(frames), info.width, info.height, path)
    return frames, info
