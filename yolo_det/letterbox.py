from typing import Tuple

import numpy as np

from .errors import FormatError
from .types import ResizeScale


def letterbox_top_left(
    image: np.ndarray,
    input_size: int = 640,
    color: Tuple[int, int, int] = (0, 0, 0),
) -> Tuple[np.ndarray, ResizeScale]:
    """
    Resize an image so its longer side equals `input_size` and place it at the
    top-left corner of a square `input_size` x `input_size` canvas.

    Padding is added to the bottom/right only. Boxes predicted on the canvas map
    back to the original image with a single multiplication by the returned
    `ResizeScale`; centering the image (as most YOLO exports do) would break
    that mapping because it needs an additive offset.

    Returns:
        canvas: (input_size, input_size, 3) uint8 image
        scale: ResizeScale for undoing the resize
    """
    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for letterbox_top_left(). Install with `pip install opencv-python`.") from e

    if image is None or not hasattr(image, "shape"):
        raise FormatError("image must be a NumPy array (H, W, 3).")
    if image.ndim != 3 or image.shape[2] != 3:
        raise FormatError(f"Expected image shape (H, W, 3), got {getattr(image, 'shape', None)}")
    if image.dtype != np.uint8:
        raise FormatError(f"Expected uint8 pixels, got {image.dtype}")

    h, w = image.shape[:2]
    scale = ResizeScale.for_image(w, h, input_size)

    if w > h:
        resized_w, resized_h = input_size, max(1, input_size * h // w)
    else:
        resized_w, resized_h = max(1, input_size * w // h), input_size

    if (w, h) != (resized_w, resized_h):
        image = cv2.resize(image, (resized_w, resized_h), interpolation=cv2.INTER_LINEAR)

    canvas = np.empty((input_size, input_size, 3), dtype=np.uint8)
    canvas[:] = np.array(color, dtype=np.uint8)
    canvas[:resized_h, :resized_w] = image
    return canvas, scale


def to_input_tensor(canvas_rgb: np.ndarray) -> np.ndarray:
    """
    HWC uint8 RGB -> NCHW float32 in [0, 1], batch of one.

    Channel order stays R, G, B; each channel is a row-major grid.
    """
    if canvas_rgb.ndim != 3 or canvas_rgb.shape[2] != 3:
        raise FormatError(f"Expected image shape (H, W, 3), got {canvas_rgb.shape}")
    blob = canvas_rgb.astype(np.float32) / 255.0
    blob = np.transpose(blob, (2, 0, 1))[None, ...]
    return np.ascontiguousarray(blob)
