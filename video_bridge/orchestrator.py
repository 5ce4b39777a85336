from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable, List, Optional, Union

import numpy as np

from yolo_det.types import Detection
from yolo_det.visualize import draw_detections

from .buffers import PixelBuffer
from .host import VideoHost

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]
FrameDetector = Callable[[np.ndarray], List[Detection]]
ProgressFn = Callable[[int, int], None]


def _overlay(image: np.ndarray, detections: List[Detection], index: int) -> np.ndarray:
    """Draw boxes; on failure keep the undecorated frame."""
    try:
        return draw_detections(image, detections)
    except Exception as exc:
        logger.warning("Could not draw detections on frame %d: %s", index, exc)
        return image


def _discard(host: VideoHost) -> None:
    # The original failure is what the caller sees.
    try:
        host.discard()
    except Exception as exc:
        logger.warning("Could not discard the failed job: %s", exc)


def infer_video(
    detector: FrameDetector,
    host: VideoHost,
    input_path: PathLike,
    output_path: PathLike,
    *,
    draw_boxes: bool = True,
    progress: Optional[ProgressFn] = None,
) -> List[List[Detection]]:
    """
    Run `detector` over every frame of `input_path` and write the result to
    `output_path`.

    The whole input is decoded first. Frames are then processed strictly in
    order with one detector call each, and the output is assembled once every
    frame has been written back. `progress(done, total)` is called after each
    frame. If any frame fails, the host's copy of the job is discarded before
    the error propagates. Returns the detections per frame.
    """

    loaded = host.load_video(input_path)
    logger.info("Processing %d frames (%dx%d)", loaded.frame_count, loaded.width, loaded.height)

    buf = PixelBuffer.for_frame(loaded.width, loaded.height)
    results: List[List[Detection]] = []
    t0 = time.perf_counter()

    try:
        for index in range(loaded.frame_count):
            with buf.lend() as lease:
                host.get_frame(index, lease)
            image = buf.to_array(loaded.width, loaded.height)

            detections = detector(image)
            results.append(detections)
            logger.info("frame %d/%d: %d detections", index + 1, loaded.frame_count, len(detections))

            if draw_boxes and detections:
                buf.fill_from(_overlay(image, detections, index))

            with buf.lend() as lease:
                host.write_frame(index, lease)
            if progress is not None:
                progress(index + 1, loaded.frame_count)
    except BaseException:
        logger.error("Job failed after %d of %d frames; discarding it", len(results), loaded.frame_count)
        _discard(host)
        raise

    host.assemble_video(output_path)

    elapsed = time.perf_counter() - t0
    fps = loaded.frame_count / elapsed if elapsed > 0 else 0.0
    logger.info("Wrote %s (%d frames, %.2f fps)", output_path, loaded.frame_count, fps)
    return results
