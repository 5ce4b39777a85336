from __future__ import annotations

import logging
from dataclasses import dataclass, field
from fractions import Fraction
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Union

import av
from av.codec.codec import UnknownCodecError
from av.video.frame import PictureType

from .errors import CodecNotFoundError, EncodeError, UnwrittenFramesError, VideoIOError
from .frames import Frame, VideoStreamInfo
from .timebase import frame_pts, rescale, resolve_frame_rate

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# libavformat AVFMT_GLOBALHEADER: the muxer wants codec extradata in the header.
AVFMT_GLOBALHEADER = 0x0040


@dataclass(frozen=True)
class SinkConfig:
    """
    Encoder settings.

    - codec_name: encoder to use; H.264 unless the FFmpeg build lacks one
    - options: private encoder options passed when the codec is opened
    - max_drain_iterations: upper bound on flush attempts after the last frame
    """

    codec_name: str = "h264"
    options: Dict[str, str] = field(default_factory=lambda: {"preset": "slow"})
    pix_fmt: str = "yuv420p"
    max_drain_iterations: int = 100

    def __post_init__(self) -> None:
        if self.max_drain_iterations < 1:
            raise ValueError("max_drain_iterations must be >= 1")

    @classmethod
    def for_codec(cls, codec_name: str) -> "SinkConfig":
        """x264 gets the slow preset; other encoders keep their defaults."""
        options = {"preset": "slow"} if codec_name in ("h264", "libx264") else {}
        return cls(codec_name=codec_name, options=options)


@dataclass(frozen=True)
class EncodeReport:
    path: Path
    frames_sent: int
    packets_written: int
    frame_rate: Fraction
    bit_rate: int
    global_header: bool


def target_bit_rate(width: int, height: int, frame_rate: Fraction) -> int:
    """Half of the uncompressed RGB24 bit rate: fidelity over file size."""
    uncompressed = 3 * 8 * width * height * frame_rate
    return int(uncompressed / 2)


def missing_outputs(frames: Iterable[Frame]) -> List[int]:
    return [frame.index for frame in frames if not frame.is_written]


class FrameSink:
    """
    Encodes processed RGB24 frames into a new container.

    Every frame becomes an intra picture: detection overlays change pixels in
    ways inter-frame prediction from the source cannot describe. Timestamps are
    generated from a fixed 1/frame_rate step and rescaled from the encoder time
    base to the output stream time base before muxing.
    """

    def __init__(self, info: VideoStreamInfo, path: PathLike, config: SinkConfig = SinkConfig()):
        self.info = info
        self.path = Path(path)
        self.config = config
        self.frame_rate, defaulted = resolve_frame_rate(info.frame_rate)
        if defaulted:
            logger.warning("No frame rate from decoder found, defaulting to %s fps for encoder", self.frame_rate)
        self.bit_rate = target_bit_rate(info.width, info.height, self.frame_rate)
        self.global_header = False
        self.packets_written = 0
        self.frames_sent = 0
        self._output: Optional[av.container.OutputContainer] = None
        self._stream: Optional[av.video.stream.VideoStream] = None
        self._encoder_time_base = Fraction(1) / self.frame_rate

    def open(self) -> None:
        try:
            output = av.open(str(self.path), mode="w")
        except OSError as exc:
            raise VideoIOError(f"Could not create {self.path}: {exc}") from exc
        except av.error.FFmpegError as exc:
            raise EncodeError(f"Could not create container {self.path}: {exc}") from exc

        try:
            stream = output.add_stream(self.config.codec_name, rate=self.frame_rate, options=dict(self.config.options))
        except (UnknownCodecError, av.error.EncoderNotFoundError) as exc:
            output.close()
            self.path.unlink(missing_ok=True)
            raise CodecNotFoundError(f"Could not find encoder {self.config.codec_name!r}") from exc

        stream.width = self.info.width
        stream.height = self.info.height
        stream.pix_fmt = self.config.pix_fmt
        stream.codec_context.bit_rate = self.bit_rate
        stream.codec_context.time_base = self._encoder_time_base

        output.metadata.update(self.info.metadata)

        # PyAV raises AV_CODEC_FLAG_GLOBAL_HEADER on the encoder when the muxer asks for it.
        self.global_header = bool(int(output.format.flags) & AVFMT_GLOBALHEADER)

        self._output = output
        self._stream = stream
        try:
            output.start_encoding()
        except av.error.FFmpegError as exc:
            self.abort()
            raise EncodeError(f"Could not open encoder / write header for {self.path}: {exc}") from exc

        logger.debug("Encoder settings")
        logger.debug("  codec %s, pix_fmt %s, %dx%d", stream.codec_context.name, stream.pix_fmt, stream.width, stream.height)
        logger.debug("  time base %s -> stream %s", self._encoder_time_base, stream.time_base)
        logger.debug("  bit rate %d, frame rate %s, global header %s", self.bit_rate, self.frame_rate, self.global_header)

    def _write_packets(self, packets: Sequence[av.Packet]) -> None:
        stream = self._stream
        stream_tb = stream.time_base
        for packet in packets:
            packet.stream = stream
            packet.pts = rescale(packet.pts, self._encoder_time_base, stream_tb)
            packet.dts = rescale(packet.dts, self._encoder_time_base, stream_tb)
            if packet.duration:
                packet.duration = rescale(packet.duration, self._encoder_time_base, stream_tb)
            packet.time_base = stream_tb
            self._output.mux(packet)
            self.packets_written += 1

    def send(self, frame: Frame) -> None:
        if self._output is None:
            raise EncodeError("FrameSink is not open")
        if frame.output is None:
            raise UnwrittenFramesError([frame.index])

        try:
            rgb = av.VideoFrame.from_ndarray(frame.output, format="rgb24")
            yuv = rgb.reformat(format=self.config.pix_fmt)
            yuv.pts = frame_pts(self.frames_sent, self.frame_rate, self._encoder_time_base)
            yuv.time_base = self._encoder_time_base
            yuv.pict_type = PictureType.I
            self._write_packets(self._stream.encode(yuv))
        except av.error.FFmpegError as exc:
            raise EncodeError(f"Encoding frame {frame.index} failed: {exc}") from exc
        self.frames_sent += 1

    def _flush(self) -> None:
        for _ in range(self.config.max_drain_iterations):
            try:
                packets = self._stream.encode(None)
            except av.error.EOFError:
                break
            if not packets:
                break
            self._write_packets(packets)

    def finish(self) -> EncodeReport:
        """Drain the encoder and write the container trailer."""
        if self._output is None:
            raise EncodeError("FrameSink is not open")
        try:
            self._flush()
            self._output.close()
        except av.error.FFmpegError as exc:
            self.abort()
            raise EncodeError(f"Finalizing {self.path} failed: {exc}") from exc
        self._output = None
        logger.debug("Wrote %d packets for %d frames to %s", self.packets_written, self.frames_sent, self.path)
        return EncodeReport(
            path=self.path,
            frames_sent=self.frames_sent,
            packets_written=self.packets_written,
            frame_rate=self.frame_rate,
            bit_rate=self.bit_rate,
            global_header=self.global_header,
        )

    def abort(self) -> None:
        """Close without finalizing and remove the partial file."""
        if self._output is not None:
            try:
                self._output.close()
            except av.error.FFmpegError as exc:
                logger.debug("Ignoring close error on aborted output %s: %s", self.path, exc)
        self._output = None
        self.path.unlink(missing_ok=True)


def encode_video(
    frames: Sequence[Frame],
    info: VideoStreamInfo,
    path: PathLike,
    config: SinkConfig = SinkConfig(),
) -> EncodeReport:
    """
    Encode every frame's output buffer, in order, into `path`.

    All frames must carry an output; nothing is written otherwise.
    """

    missing = missing_outputs(frames)
    if missing:
        raise UnwrittenFramesError(missing)

    sink = FrameSink(info, path, config)
    sink.open()
    try:
        for frame in frames:
            sink.send(frame)
    except BaseException:
        sink.abort()
        raise
    report = sink.finish()
    logger.info("Encoded %d frames to %s", report.frames_sent, report.path)
    return report
