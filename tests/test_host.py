import unittest
from fractions import Fraction
from pathlib import Path
from typing import List

import numpy as np

from video_bridge.buffers import PixelBuffer
from video_bridge.errors import (
    BufferCapacityError,
    FrameAlreadyWrittenError,
    FrameIndexError,
    StatePoisonedError,
    UnwrittenFramesError,
    VideoIOError,
    VideoNotLoadedError,
)
from video_bridge.frames import Frame, VideoStreamInfo
from video_bridge.host import InProcessVideoHost
from yolo_det.errors import FormatError, Status

WIDTH, HEIGHT = 4, 2


def fake_decoder(path):
    if "missing" in str(path):
        raise VideoIOError(f"Video not found: {path}")
    if "broken" in str(path):
        raise RuntimeError("decoder crashed")
    frames = [
        Frame(index=i, pixels=np.full((HEIGHT, WIDTH, 3), i + 1, dtype=np.uint8), pts=i, time_base=Fraction(1, 25))
        for i in range(3)
    ]
    return frames, VideoStreamInfo(width=WIDTH, height=HEIGHT, frame_rate=Fraction(25), codec_name="h264")


class RecordingEncoder:
    def __init__(self) -> None:
        self.calls: List[tuple] = []

    def __call__(self, frames, info, path, config):
        self.calls.append(([f.output.copy() for f in frames], info, Path(path), config))


def _get(host: InProcessVideoHost, index: int, size: int = WIDTH * HEIGHT * 3) -> bytes:
    buf = PixelBuffer(size)
    with buf.lend() as lease:
        status = host.get_frame(index, lease)
    assert status == Status.OK
    return buf.to_bytes()


def _write(host: InProcessVideoHost, index: int, value: int) -> Status:
    buf = PixelBuffer.for_frame(WIDTH, HEIGHT)
    buf.fill_from(np.full((HEIGHT, WIDTH, 3), value, dtype=np.uint8))
    with buf.lend() as lease:
        return host.write_frame(index, lease)


class TestInProcessVideoHost(unittest.TestCase):
    def setUp(self) -> None:
        self.encoder = RecordingEncoder()
        self.host = InProcessVideoHost(decoder=fake_decoder, encoder=self.encoder)

    def test_load_get_write_assemble(self) -> None:
        result = self.host.load_video("in.mp4")
        self.assertEqual((result.width, result.height, result.frame_count), (WIDTH, HEIGHT, 3))
        self.assertEqual(result.frame_bytes, WIDTH * HEIGHT * 3)

        self.assertEqual(_get(self.host, 1), bytes([2]) * (WIDTH * HEIGHT * 3))
        for i in range(3):
            self.assertEqual(_write(self.host, i, 10 + i), Status.OK)
        self.assertEqual(self.host.assemble_video("out.mp4"), Status.OK)

        outputs, info, path, _ = self.encoder.calls[0]
        self.assertEqual(path, Path("out.mp4"))
        self.assertEqual(info.width, WIDTH)
        self.assertEqual([int(o[0, 0, 0]) for o in outputs], [10, 11, 12])

    def test_larger_buffer_is_fine(self) -> None:
        self.host.load_video("in.mp4")
        data = _get(self.host, 0, size=WIDTH * HEIGHT * 3 + 5)
        self.assertEqual(data[-5:], b"\x00" * 5)

    def test_small_buffer(self) -> None:
        self.host.load_video("in.mp4")
        with self.assertRaises(BufferCapacityError):
            _get(self.host, 0, size=5)

    def test_index_out_of_range(self) -> None:
        self.host.load_video("in.mp4")
        with self.assertRaises(FrameIndexError) as ctx:
            _write(self.host, 3, 0)
        self.assertEqual(int(ctx.exception.status), 1)
        with self.assertRaises(FrameIndexError):
            _get(self.host, -1)

    def test_write_once(self) -> None:
        self.host.load_video("in.mp4")
        _write(self.host, 0, 5)
        with self.assertRaises(FrameAlreadyWrittenError):
            _write(self.host, 0, 6)

    def test_wrong_output_size(self) -> None:
        self.host.load_video("in.mp4")
        buf = PixelBuffer(7)
        with buf.lend() as lease:
            with self.assertRaises(FormatError):
                self.host.write_frame(0, lease)

    def test_assemble_requires_every_frame(self) -> None:
        self.host.load_video("in.mp4")
        _write(self.host, 1, 5)
        with self.assertRaises(UnwrittenFramesError) as ctx:
            self.host.assemble_video("out.mp4")
        self.assertEqual(ctx.exception.missing, [0, 2])
        self.assertEqual(ctx.exception.status, Status.UNWRITTEN_FRAMES)
        self.assertEqual(self.encoder.calls, [])
        # The failed job is discarded.
        with self.assertRaises(VideoNotLoadedError):
            _get(self.host, 0)

    def test_assemble_clears_session(self) -> None:
        self.host.load_video("in.mp4")
        for i in range(3):
            _write(self.host, i, i)
        self.host.assemble_video("out.mp4")
        with self.assertRaises(VideoNotLoadedError):
            self.host.assemble_video("again.mp4")

    def test_failed_load_keeps_previous_video(self) -> None:
        self.host.load_video("in.mp4")
        with self.assertRaises(VideoIOError):
            self.host.load_video("missing.mp4")
        self.assertEqual(len(_get(self.host, 2)), WIDTH * HEIGHT * 3)

    def test_unexpected_failure_poisons_host(self) -> None:
        with self.assertRaises(RuntimeError):
            self.host.load_video("broken.mp4")
        with self.assertRaises(StatePoisonedError):
            self.host.load_video("in.mp4")

    def test_discard_drops_partial_outputs(self) -> None:
        self.host.load_video("in.mp4")
        _write(self.host, 0, 9)
        self.assertEqual(self.host.discard(), Status.OK)
        with self.assertRaises(VideoNotLoadedError):
            _write(self.host, 1, 9)
        with self.assertRaises(VideoNotLoadedError):
            self.host.assemble_video("out.mp4")
        self.assertEqual(self.encoder.calls, [])
        # Nothing loaded is fine too.
        self.assertEqual(self.host.discard(), Status.OK)

    def test_close_discards(self) -> None:
        with self.host as host:
            host.load_video("in.mp4")
        with self.assertRaises(VideoNotLoadedError):
            _get(self.host, 0)

    def test_close_after_poison_does_not_raise(self) -> None:
        with self.assertRaises(RuntimeError):
            self.host.load_video("broken.mp4")
        self.host.close()

    def test_init_logging(self) -> None:
        self.assertEqual(self.host.init_logging(0), Status.OK)
        self.assertEqual(self.host.init_logging(3), Status.OK)


if __name__ == "__main__":
    unittest.main()
