import importlib.util
import unittest
from fractions import Fraction
from unittest import mock

import numpy as np

from video_bridge.buffers import PixelBuffer
from video_bridge.errors import FrameIndexError, VideoNotLoadedError
from video_bridge.frames import Frame, VideoStreamInfo
from video_bridge.host import InProcessVideoHost
from video_bridge.orchestrator import infer_video
from yolo_det.types import Detection

HAS_CV2 = importlib.util.find_spec("cv2") is not None

WIDTH, HEIGHT = 4, 2

def fake_decoder(path):
    frames = [
        Frame(index=i, pixels=np.full((HEIGHT, WIDTH, 3), i + 1, dtype=np.uint8), pts=i, time_base=Fraction(1, 25))
        for i in range(3)
    ]
    return frames, VideoStreamInfo(width=WIDTH, height=HEIGHT, frame_rate=Fraction(25), codec_name="h264")

class RecordingEncoder:
    def __init__(self) -> None:
        self.calls = []

    def __call__(self, frames, info, path, config):
        self.calls.append(([f.output.copy() for f in frames], info, path, config))

class CountingDetector:
    def __init__(self, detections=None) -> None:
        self.seen = []
        self.detections = detections or []

    def __call__(self, image: np.ndarray):
        self.seen.append(int(image[0, 0, 0]))
        return list(self.detections)

class TestInferVideo(unittest.TestCase):
    def setUp(self) -> None:
        self.encoder = RecordingEncoder()
        self.host = InProcessVideoHost(decoder=fake_decoder, encoder=self.encoder)

    def test_one_engine_call_per_frame_in_order(self) -> None:
        detector = CountingDetector()
        results = infer_video(detector, self.host, "in.mp4", "out.mp4")
        self.assertEqual(detector.seen, [1, 2, 3])
        self.assertEqual(results, [[], [], []])
        self.assertEqual(len(self.encoder.calls), 1)

    def test_progress_callback(self) -> None:
        calls = []
        infer_video(
            CountingDetector(), self.host, "in.mp4", "out.mp4", progress=lambda done, total: calls.append((done, total))
        )
        self.assertEqual(calls, [(1, 3), (2, 3), (3, 3)])

    def test_frames_pass_through_without_overlay(self) -> None:
        det = Detection(0, 0, 2, 2, class_name="person", confidence=0.9, class_id=0)
        infer_video(CountingDetector([det]), self.host, "in.mp4", "out.mp4", draw_boxes=False)
        outputs = self.encoder.calls[0][0]
        for i, out in enumerate(outputs):
            self.assertTrue(np.all(out == i + 1))

    @unittest.skipUnless(HAS_CV2, "opencv-python not installed")
    def test_overlay_changes_pixels(self) -> None:
        det = Detection(0, 0, 3, 1, class_name="person", confidence=0.9, class_id=0)
        results = infer_video(CountingDetector([det]), self.host, "in.mp4", "out.mp4")
        self.assertEqual(results[0], [det])
        outputs = self.encoder.calls[0][0]
        self.assertEqual(outputs[0].shape, (HEIGHT, WIDTH, 3))
        self.assertFalse(np.all(outputs[0] == 1))

    def test_overlay_failure_is_logged_and_skipped(self) -> None:
        det = Detection(0, 0, 2, 2, class_name="person", confidence=0.9, class_id=0)
        with mock.patch("video_bridge.orchestrator.draw_detections", side_effect=ValueError("bad box")):
            with self.assertLogs("video_bridge.orchestrator", level="WARNING") as logs:
                infer_video(CountingDetector([det]), self.host, "in.mp4", "out.mp4")
        self.assertEqual(len(logs.records), 3)
        outputs = self.encoder.calls[0][0]
        self.assertTrue(np.all(outputs[2] == 3))

    def test_detector_failure_aborts_job(self) -> None:
        def failing(image):
            raise RuntimeError("engine failed")

        with self.assertRaises(RuntimeError):
            infer_video(failing, self.host, "in.mp4", "out.mp4")
        self.assertEqual(self.encoder.calls, [])

    def test_failed_job_is_discarded(self) -> None:
        calls = {"n": 0}

        def fails_on_second_frame(image):
            calls["n"] += 1
            if calls["n"] == 2:
                raise RuntimeError("engine failed")
            return []

        with self.assertLogs("video_bridge.orchestrator", level="ERROR"):
            with self.assertRaises(RuntimeError):
                infer_video(fails_on_second_frame, self.host, "in.mp4", "out.mp4")

        buf = PixelBuffer.for_frame(WIDTH, HEIGHT)
        with self.assertRaises(VideoNotLoadedError):
            with buf.lend() as lease:
                self.host.get_frame(0, lease)
        with self.assertRaises(VideoNotLoadedError):
            with buf.lend() as lease:
                self.host.write_frame(1, lease)
        with self.assertRaises(VideoNotLoadedError):
            self.host.assemble_video("out.mp4")
        self.assertEqual(self.encoder.calls, [])

    def test_host_failure_mid_loop_is_discarded(self) -> None:
        with mock.patch.object(self.host, "write_frame", side_effect=FrameIndexError(1, 3)):
            with self.assertRaises(FrameIndexError):
                infer_video(CountingDetector(), self.host, "in.mp4", "out.mp4")
        self.assertIsNone(self.host.session.info)
        self.assertEqual(self.host.session.frames, [])

    def test_next_job_runs_after_a_failed_one(self) -> None:
        def failing(image):
            raise RuntimeError("engine failed")

        with self.assertRaises(RuntimeError):
            infer_video(failing, self.host, "in.mp4", "out.mp4")
        results = infer_video(CountingDetector(), self.host, "in.mp4", "out.mp4")
        self.assertEqual(len(results), 3)
        self.assertEqual(len(self.encoder.calls), 1)

if __name__ == "__main__":
    unittest.main()
