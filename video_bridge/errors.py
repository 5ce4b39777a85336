from __future__ import annotations

from typing import Any, Dict, Sequence, Tuple, Type

from yolo_det.errors import FormatError, PostProcessingError, Status, YoloError


class VideoIOError(YoloError):
    """Input file missing or unreadable, output path not writable."""

    status = Status.IO_ERROR


class DecodeError(YoloError):
    status = Status.DECODE_ERROR


class StreamNotFoundError(DecodeError):
    """The container holds no video stream."""


class CodecNotFoundError(DecodeError):
    """No decoder (or H.264 encoder) is available for the stream."""


class NoFramesError(YoloError):
    """Decoding succeeded but produced no frames."""

    status = Status.NO_FRAMES


class EncodeError(YoloError):
    status = Status.ENCODE_ERROR


class ContractError(YoloError):
    """The caller broke the host call contract."""

    status = Status.CONTRACT_ERROR


class VideoNotLoadedError(ContractError):
    pass


class FrameIndexError(ContractError):
    status = Status.INDEX_OUT_OF_RANGE

    def __init__(self, index: int, frame_count: int):
        super().__init__(f"Frame index {index} out of range (frame count {frame_count})")
        self.index = index
        self.frame_count = frame_count


class FrameAlreadyWrittenError(ContractError):
    pass


class UnwrittenFramesError(ContractError):
    status = Status.UNWRITTEN_FRAMES

    def __init__(self, missing: Sequence[int]):
        preview = list(missing[:20])
        more = "" if len(missing) <= 20 else f" (+{len(missing) - 20} more)"
        super().__init__(f"{len(missing)} frame(s) have no written output: {preview}{more}")
        self.missing = list(missing)


class BufferCapacityError(ContractError):
    pass


class BufferReleasedError(ContractError):
    """A borrowed buffer was used after the call that lent it returned."""


class BufferBorrowedError(ContractError):
    """The buffer is already lent out."""


class StatePoisonedError(YoloError):
    """A previous call failed unexpectedly while holding the session lock."""

    status = Status.STATE_POISONED


class RemoteHostError(YoloError):
    """Unexpected failure inside an out-of-process host."""

    status = Status.INTERNAL


_BY_NAME: Dict[str, Type[YoloError]] = {
    cls.__name__: cls
    for cls in (
        VideoIOError,
        DecodeError,
        StreamNotFoundError,
        CodecNotFoundError,
        NoFramesError,
        EncodeError,
        ContractError,
        VideoNotLoadedError,
        FrameAlreadyWrittenError,
        BufferCapacityError,
        BufferReleasedError,
        BufferBorrowedError,
        StatePoisonedError,
        RemoteHostError,
        FormatError,
        PostProcessingError,
    )
}


def status_for(exc: BaseException) -> Status:
    if isinstance(exc, YoloError):
        return exc.status
    return Status.INTERNAL


def error_payload(exc: BaseException) -> Tuple[int, str, str, Dict[str, Any]]:
    """(status, class name, message, details) describing `exc` for the wire."""
    details: Dict[str, Any] = {}
    if isinstance(exc, FrameIndexError):
        details = {"index": exc.index, "frame_count": exc.frame_count}
    elif isinstance(exc, UnwrittenFramesError):
        details = {"missing": exc.missing}
    return int(status_for(exc)), type(exc).__name__, str(exc), details


def rebuild_error(status: int, name: str, message: str, details: Dict[str, Any]) -> YoloError:
    """Recreate a typed error reported by another process."""
    if name == FrameIndexError.__name__:
        return FrameIndexError(details["index"], details["frame_count"])
    if name == UnwrittenFramesError.__name__:
        return UnwrittenFramesError(details["missing"])
    cls = _BY_NAME.get(name)
    if cls is None:
        return RemoteHostError(f"{name}: {message}")
    err = cls(message)
    err.status = Status(status)
    return err
