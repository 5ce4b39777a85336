from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from fractions import Fraction
from typing import Dict, Optional

import numpy as np

from yolo_det.errors import FormatError

from .errors import FrameAlreadyWrittenError


class FrameKind(str, Enum):
    INTRA = "I"
    PREDICTED = "P"


@dataclass(frozen=True)
class VideoStreamInfo:
    """
    Properties of the decoded video stream, read once by FrameSource and
    used by FrameSink to configure the encoder. `frame_rate` is None when
    the container does not report one.
    """

    width: int
    height: int
    frame_rate: Optional[Fraction]
    codec_name: str
    bit_rate: int = 0
    aspect_ratio: Optional[Fraction] = None
    pix_fmt: Optional[str] = None
    time_base: Optional[Fraction] = None
    stream_count: int = 1
    metadata: Dict[str, str] = field(default_factory=dict)

    @property
    def frame_bytes(self) -> int:
        return self.width * self.height * 3


@dataclass
class Frame:
    """
    One decoded frame in presentation order.

    `pixels` is the RGB24 image as decoded. `output` stays None until the
    processed pixels are written back, which may happen once.
    """

    index: int
    pixels: np.ndarray
    pts: Optional[int]
    time_base: Optional[Fraction]
    kind: FrameKind = FrameKind.PREDICTED
    output: Optional[np.ndarray] = None

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def timestamp(self) -> Optional[float]:
        """Presentation time in seconds, if the frame carried one."""
        if self.pts is None or self.time_base is None:
            return None
        return float(self.pts * self.time_base)

    @property
    def is_written(self) -> bool:
        return self.output is not None

    def write_output(self, data: bytes) -> None:
        if self.output is not None:
            raise FrameAlreadyWrittenError(f"Frame {self.index} already has an output buffer")
        expected = self.width * self.height * 3
        if len(data) != expected:
            raise FormatError(f"Frame {self.index}: expected {expected} RGB24 bytes, got {len(data)}")
        self.output = np.frombuffer(data, dtype=np.uint8).reshape(self.height, self.width, 3).copy()
