import unittest
from fractions import Fraction

import numpy as np

from video_bridge.errors import FrameIndexError, StatePoisonedError, VideoNotLoadedError
from video_bridge.frames import Frame, VideoStreamInfo
from video_bridge.session import VideoSession
from yolo_det.errors import Status


def _frames(count: int, width: int = 4, height: int = 2):
    return [
        Frame(index=i, pixels=np.full((height, width, 3), i, dtype=np.uint8), pts=i, time_base=Fraction(1, 25))
        for i in range(count)
    ]


INFO = VideoStreamInfo(width=4, height=2, frame_rate=Fraction(25), codec_name="h264")


class TestVideoSession(unittest.TestCase):
    def test_frame_lookup(self) -> None:
        session = VideoSession()
        with session.locked() as s:
            s.load(_frames(3), INFO)
            self.assertEqual(s.frame(2).index, 2)
            with self.assertRaises(FrameIndexError) as ctx:
                s.frame(3)
        self.assertEqual(ctx.exception.status, Status.INDEX_OUT_OF_RANGE)
        self.assertFalse(session.poisoned)

    def test_not_loaded(self) -> None:
        session = VideoSession()
        with self.assertRaises(VideoNotLoadedError):
            with session.locked() as s:
                s.frame(0)
        # Taxonomy errors leave the session usable.
        with session.locked():
            pass

    def test_unexpected_error_poisons(self) -> None:
        session = VideoSession()
        with self.assertRaises(KeyError):
            with session.locked():
                raise KeyError("boom")
        self.assertTrue(session.poisoned)
        with self.assertRaises(StatePoisonedError) as ctx:
            with session.locked():
                pass
        self.assertEqual(ctx.exception.status, Status.STATE_POISONED)

    def test_clear(self) -> None:
        session = VideoSession()
        with session.locked() as s:
            s.load(_frames(1), INFO)
            s.clear()
            self.assertEqual(s.frames, [])
            self.assertIsNone(s.info)


if __name__ == "__main__":
    unittest.main()
