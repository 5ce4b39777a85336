"""
Video host running in a child process.

The child owns an InProcessVideoHost and answers one request at a time over a
multiprocessing Pipe. Requests are `(call, args)` tuples; replies are
`("ok", value)` or `("error", (status, name, message, details))`. Pixel data
travels as bytes and is copied into or out of the caller's borrowed buffer on
the parent side, so caller memory never leaves the parent process.
"""

from __future__ import annotations

import logging
import multiprocessing as mp
from multiprocessing.connection import Connection
from pathlib import Path
from typing import Any, Optional, Tuple, Union

from yolo_det.errors import Status

from .buffers import BorrowedBuffer, PixelBuffer
from .errors import RemoteHostError, error_payload, rebuild_error
from .host import Decoder, Encoder, InProcessVideoHost, VideoHost, VideoLoadResult
from .sink import SinkConfig, encode_video
from .source import decode_video

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

_CLOSE = "close"


def _child_get_frame(host: InProcessVideoHost, index: int, capacity: int) -> bytes:
    buf = PixelBuffer(capacity)
    with buf.lend() as lease:
        host.get_frame(index, lease)
    return buf.to_bytes()


def _child_write_frame(host: InProcessVideoHost, index: int, data: bytes) -> Status:
    buf = PixelBuffer(len(data))
    with buf.lend() as lease:
        lease.write(data)
        return host.write_frame(index, lease)


def _dispatch(host: InProcessVideoHost, call: str, args: Tuple[Any, ...]) -> Any:
    if call == "init_logging":
        return host.init_logging(*args)
    if call == "load_video":
        return host.load_video(*args)
    if call == "get_frame":
        return _child_get_frame(host, *args)
    if call == "write_frame":
        return _child_write_frame(host, *args)
    if call == "assemble_video":
        return host.assemble_video(*args)
    if call == "discard":
        return host.discard()
    raise RemoteHostError(f"Unknown host call {call!r}")


def _serve(conn: Connection, decoder: Decoder, encoder: Encoder, sink_config: SinkConfig) -> None:
    host = InProcessVideoHost(decoder=decoder, encoder=encoder, sink_config=sink_config)
    try:
        while True:
            try:
                call, args = conn.recv()
            except EOFError:
                break
            if call == _CLOSE:
                conn.send(("ok", None))
                break
            try:
                value = _dispatch(host, call, args)
            except Exception as exc:
                logger.debug("Host call %s failed: %s", call, exc)
                conn.send(("error", error_payload(exc)))
            else:
                conn.send(("ok", value))
    finally:
        conn.close()


class SubprocessVideoHost(VideoHost):
    """
    VideoHost whose decoded video lives in a separate process.

    `decoder` and `encoder` must be picklable (module-level functions).
    Errors raised in the child come back as the same exception types.
    """

    def __init__(
        self,
        *,
        decoder: Decoder = decode_video,
        encoder: Encoder = encode_video,
        sink_config: Optional[SinkConfig] = None,
        start_method: Optional[str] = None,
    ):
        ctx = mp.get_context(start_method)
        self._conn, child_conn = ctx.Pipe()
        self._process = ctx.Process(
            target=_serve,
            args=(child_conn, decoder, encoder, sink_config if sink_config is not None else SinkConfig()),
            name="video-host",
            daemon=True,
        )
        self._process.start()
        child_conn.close()
        logger.debug("Started video host process pid=%s", self._process.pid)

    @property
    def alive(self) -> bool:
        return self._process.is_alive()

    def _call(self, call: str, *args: Any) -> Any:
        if self._conn.closed:
            raise RemoteHostError("Video host process is closed")
        try:
            self._conn.send((call, args))
            kind, value = self._conn.recv()
        except (EOFError, OSError) as exc:
            raise RemoteHostError(f"Video host process died during {call}: {exc}") from exc
        if kind == "error":
            raise rebuild_error(*value)
        return value

    def init_logging(self, verbosity: int) -> Status:
        return self._call("init_logging", verbosity)

    def load_video(self, path: PathLike) -> VideoLoadResult:
        return self._call("load_video", str(path))

    def get_frame(self, index: int, buffer: BorrowedBuffer) -> Status:
        data = self._call("get_frame", index, buffer.capacity)
        buffer.write(data)
        return Status.OK

    def write_frame(self, index: int, buffer: BorrowedBuffer) -> Status:
        return self._call("write_frame", index, buffer.read())

    def assemble_video(self, path: PathLike) -> Status:
        return self._call("assemble_video", str(path))

    def discard(self) -> Status:
        return self._call("discard")

    def close(self, timeout: float = 5.0) -> None:
        if not self._conn.closed:
            try:
                self._conn.send((_CLOSE, ()))
                self._conn.recv()
            except (EOFError, OSError) as exc:
                logger.debug("Video host process already gone: %s", exc)
            self._conn.close()
        self._process.join(timeout)
        if self._process.is_alive():
            logger.warning("Video host process did not exit, terminating")
            self._process.terminate()
            self._process.join()
