import unittest

import numpy as np

from video_bridge.buffers import PixelBuffer
from video_bridge.errors import BufferBorrowedError, BufferCapacityError, BufferReleasedError
from yolo_det.errors import FormatError


class TestPixelBuffer(unittest.TestCase):
    def test_lend_read_write(self) -> None:
        buf = PixelBuffer(6)
        with buf.lend() as lease:
            self.assertEqual(lease.capacity, 6)
            lease.write(b"\x01\x02\x03", offset=3)
            self.assertEqual(lease.read(), b"\x00\x00\x00\x01\x02\x03")
        self.assertEqual(buf.to_bytes(), b"\x00\x00\x00\x01\x02\x03")

    def test_lease_unusable_after_call(self) -> None:
        buf = PixelBuffer(3)
        with buf.lend() as lease:
            kept = lease
        self.assertTrue(kept.released)
        with self.assertRaises(BufferReleasedError):
            kept.read()
        with self.assertRaises(BufferReleasedError):
            kept.write(b"\x00")

    def test_cannot_lend_twice(self) -> None:
        buf = PixelBuffer(3)
        with buf.lend():
            self.assertTrue(buf.lent)
            with self.assertRaises(BufferBorrowedError):
                with buf.lend():
                    pass
            with self.assertRaises(BufferBorrowedError):
                buf.to_bytes()
        self.assertFalse(buf.lent)

    def test_lease_released_on_error(self) -> None:
        buf = PixelBuffer(3)
        with self.assertRaises(RuntimeError):
            with buf.lend() as lease:
                raise RuntimeError("boom")
        self.assertTrue(lease.released)
        self.assertFalse(buf.lent)

    def test_write_past_capacity(self) -> None:
        buf = PixelBuffer(4)
        with buf.lend() as lease:
            with self.assertRaises(BufferCapacityError):
                lease.write(b"12345")
            with self.assertRaises(BufferCapacityError):
                lease.write(b"12", offset=3)

    def test_image_roundtrip(self) -> None:
        img = np.arange(2 * 3 * 3, dtype=np.uint8).reshape(2, 3, 3)
        buf = PixelBuffer.for_frame(3, 2)
        buf.fill_from(img)
        self.assertTrue(np.array_equal(buf.to_array(3, 2), img))
        with self.assertRaises(FormatError):
            buf.to_array(2, 2)
        with self.assertRaises(FormatError):
            buf.fill_from(np.zeros((1, 1, 3), dtype=np.uint8))

    def test_size_must_be_positive(self) -> None:
        with self.assertRaises(ValueError):
            PixelBuffer(0)


if __name__ == "__main__":
    unittest.main()
