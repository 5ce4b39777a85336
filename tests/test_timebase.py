import unittest
from fractions import Fraction

from video_bridge.sink import target_bit_rate
from video_bridge.timebase import DEFAULT_FRAME_RATE, frame_duration, frame_pts, rescale, resolve_frame_rate


class TestTimebase(unittest.TestCase):
    def test_frame_pts_in_encoder_time_base(self) -> None:
        rate = Fraction(30000, 1001)
        tb = 1 / rate
        self.assertEqual([frame_pts(i, rate, tb) for i in range(4)], [0, 1, 2, 3])

    def test_rescale_to_stream_time_base(self) -> None:
        # Frame 3 at 25 fps in a 1/12800 stream clock.
        self.assertEqual(rescale(3, Fraction(1, 25), Fraction(1, 12800)), 1536)
        self.assertEqual(rescale(1, Fraction(1, 30), Fraction(1, 90000)), 3000)
        self.assertIsNone(rescale(None, Fraction(1, 25), Fraction(1, 12800)))

    def test_rescale_rounds_to_nearest(self) -> None:
        self.assertEqual(rescale(1, Fraction(1, 3), Fraction(1, 2)), 1)
        self.assertEqual(rescale(1, Fraction(1, 4), Fraction(1, 2)), 1)  # 0.5 rounds away from zero

    def test_unknown_frame_rate_defaults_to_30(self) -> None:
        self.assertEqual(resolve_frame_rate(None), (DEFAULT_FRAME_RATE, True))
        self.assertEqual(resolve_frame_rate(Fraction(0)), (Fraction(30), True))
        self.assertEqual(resolve_frame_rate(Fraction(25)), (Fraction(25), False))

    def test_frame_duration(self) -> None:
        self.assertEqual(frame_duration(Fraction(25)), Fraction(1, 25))

    def test_target_bit_rate(self) -> None:
        # Half the raw RGB24 rate: 24 bits * 640 * 480 * 30 / 2
        self.assertEqual(target_bit_rate(640, 480, Fraction(30)), 110592000)


if __name__ == "__main__":
    unittest.main()
