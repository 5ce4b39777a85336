"""
Pixel buffers handed across the host boundary.

The caller owns a `PixelBuffer`. To let a host read or fill it, the caller
lends it for exactly one call:

    buf = PixelBuffer.for_frame(width, height)
    with buf.lend() as lease:
        host.get_frame(index, lease)
    image = buf.to_array(width, height)

The host only ever sees the `BorrowedBuffer`. It can read and write through
it while the call runs and has no way to free or keep it: when the `with`
block ends the underlying view is released and every later use raises
`BufferReleasedError`.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional, Union

import numpy as np

from yolo_det.errors import FormatError

from .errors import BufferBorrowedError, BufferCapacityError, BufferReleasedError, ContractError

BytesLike = Union[bytes, bytearray, memoryview]


class BorrowedBuffer:
    """Temporary access to a PixelBuffer's memory for the duration of one call."""

    __slots__ = ("_view",)

    def __init__(self, view: memoryview):
        self._view: Optional[memoryview] = view

    @property
    def view(self) -> memoryview:
        if self._view is None:
            raise BufferReleasedError("Borrowed buffer used after the lending call returned")
        return self._view

    @property
    def capacity(self) -> int:
        return len(self.view)

    @property
    def released(self) -> bool:
        return self._view is None

    def read(self) -> bytes:
        return bytes(self.view)

    def write(self, data: BytesLike, offset: int = 0) -> None:
        view = self.view
        size = len(data)
        if offset < 0 or offset + size > len(view):
            raise BufferCapacityError(f"Cannot write {size} bytes at offset {offset} into a {len(view)}-byte buffer")
        view[offset : offset + size] = data

    def _expire(self) -> None:
        view, self._view = self._view, None
        if view is None:
            return
        try:
            view.release()
        except BufferError as exc:
            raise ContractError("Receiver kept a reference to a borrowed buffer past the call") from exc


class PixelBuffer:
    """Owned, fixed-size byte buffer for one RGB24 frame."""

    def __init__(self, size: int):
        if size <= 0:
            raise ValueError(f"Buffer size must be > 0, got {size}")
        self._data = bytearray(size)
        self._lease: Optional[BorrowedBuffer] = None

    @classmethod
    def for_frame(cls, width: int, height: int) -> "PixelBuffer":
        return cls(width * height * 3)

    def __len__(self) -> int:
        return len(self._data)

    @property
    def lent(self) -> bool:
        return self._lease is not None

    def _check_owned(self) -> None:
        if self._lease is not None:
            raise BufferBorrowedError("Buffer is lent out; wait for the call to return")

    @contextmanager
    def lend(self) -> Iterator[BorrowedBuffer]:
        self._check_owned()
        lease = BorrowedBuffer(memoryview(self._data))
        self._lease = lease
        try:
            yield lease
        finally:
            self._lease = None
            lease._expire()

    def to_array(self, width: int, height: int) -> np.ndarray:
        """Copy of the contents as an (H, W, 3) uint8 image."""
        self._check_owned()
        if width * height * 3 != len(self._data):
            raise FormatError(f"{width}x{height} RGB24 needs {width * height * 3} bytes, buffer has {len(self._data)}")
        return np.frombuffer(self._data, dtype=np.uint8).reshape(height, width, 3).copy()

    def to_bytes(self) -> bytes:
        self._check_owned()
        return bytes(self._data)

    def fill_from(self, image: np.ndarray) -> None:
        self._check_owned()
        data = np.ascontiguousarray(image, dtype=np.uint8).tobytes()
        if len(data) != len(self._data):
            raise FormatError(f"Image has {len(data)} bytes, buffer holds {len(self._data)}")
        self._data[:] = data
