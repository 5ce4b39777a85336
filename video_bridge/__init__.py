"""
Decode a video, run per-frame detection through a buffer boundary, and
re-encode the annotated frames.

Decoding and encoding use PyAV (FFmpeg). Frames live inside a `VideoHost`;
the caller copies them in and out through lent `PixelBuffer`s.
"""

from .buffers import BorrowedBuffer, PixelBuffer
from .config import VideoJobConfig, apply_cli_overrides, collect_cli_dests, load_job_config
from .errors import (
    BufferBorrowedError,
    BufferCapacityError,
    BufferReleasedError,
    CodecNotFoundError,
    ContractError,
    DecodeError,
    EncodeError,
    FrameAlreadyWrittenError,
    FrameIndexError,
    NoFramesError,
    RemoteHostError,
    StatePoisonedError,
    StreamNotFoundError,
    UnwrittenFramesError,
    VideoIOError,
    VideoNotLoadedError,
    status_for,
)
from .frames import Frame, FrameKind, VideoStreamInfo
from .host import InProcessVideoHost, VideoHost, VideoLoadResult
from .logs import init_logging
from .orchestrator import infer_video
from .process_host import SubprocessVideoHost
from .session import VideoSession
from .sink import EncodeReport, FrameSink, SinkConfig, encode_video
from .source import FrameSource, decode_video

__all__ = [
    "BorrowedBuffer",
    "PixelBuffer",
    "VideoJobConfig",
    "apply_cli_overrides",
    "collect_cli_dests",
    "load_job_config",
    "BufferBorrowedError",
    "BufferCapacityError",
    "BufferReleasedError",
    "CodecNotFoundError",
    "ContractError",
    "DecodeError",
    "EncodeError",
    "FrameAlreadyWrittenError",
    "FrameIndexError",
    "NoFramesError",
    "RemoteHostError",
    "StatePoisonedError",
    "StreamNotFoundError",
    "UnwrittenFramesError",
    "VideoIOError",
    "VideoNotLoadedError",
    "status_for",
    "Frame",
    "FrameKind",
    "VideoStreamInfo",
    "InProcessVideoHost",
    "VideoHost",
    "VideoLoadResult",
    "init_logging",
    "infer_video",
    "SubprocessVideoHost",
    "VideoSession",
    "EncodeReport",
    "FrameSink",
    "SinkConfig",
    "encode_video",
    "FrameSource",
    "decode_video",
]
