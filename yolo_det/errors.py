from __future__ import annotations

from enum import IntEnum


class Status(IntEnum):
    """
    Status codes reported across the host boundary.

    Every exception in the taxonomy carries one of these so a caller on the
    other side of a process boundary can rebuild the same typed error.
    """

    OK = 0
    INDEX_OUT_OF_RANGE = 1
    IO_ERROR = 2
    DECODE_ERROR = 3
    NO_FRAMES = 4
    ENCODE_ERROR = 5
    FORMAT_ERROR = 6
    POST_PROCESSING_ERROR = 7
    UNWRITTEN_FRAMES = 8
    CONTRACT_ERROR = 9
    STATE_POISONED = 10
    INTERNAL = 99


class YoloError(Exception):
    """Base class for every error raised by yolo_det and video_bridge."""

    status: Status = Status.INTERNAL


class PostProcessingError(YoloError):
    """The model output could not be interpreted (shape or broadcast mismatch)."""

    status = Status.POST_PROCESSING_ERROR


class FormatError(YoloError):
    """Unsupported pixel layout, image shape or dtype."""

    status = Status.FORMAT_ERROR
